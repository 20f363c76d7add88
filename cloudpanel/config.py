"""
Cloud Console - API Configuration

Loads configuration from environment variables and files.
"""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # API Settings
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=5000, alias="API_PORT")
    api_debug: bool = Field(default=False, alias="API_DEBUG")
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")

    # Database
    database_path: str = Field(default="/data/cloud-console.db", alias="DATABASE_PATH")
    seed_demo_data: bool = Field(default=True, alias="SEED_DEMO_DATA")
    seed_admin_password: str = Field(default="admin123", alias="SEED_ADMIN_PASSWORD")

    # LLM
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    openai_timeout: float = Field(default=60.0, alias="OPENAI_TIMEOUT")

    # Agent
    agent_disk_path: str = Field(default="/", alias="AGENT_DISK_PATH")
    agent_use_sudo: bool = Field(default=True, alias="AGENT_USE_SUDO")
    agent_service_limit: int = Field(default=20, alias="AGENT_SERVICE_LIMIT")
    agent_query_timeout: float = Field(default=10.0, alias="AGENT_QUERY_TIMEOUT")
    agent_command_timeout_ms: int = Field(default=30000, alias="AGENT_COMMAND_TIMEOUT_MS")
    agent_command_blocklist: bool = Field(default=True, alias="AGENT_COMMAND_BLOCKLIST")

    # Rate Limiting
    rate_limit_per_minute: int = Field(default=100, alias="RATE_LIMIT_PER_MINUTE")
    rate_limit_command: str = Field(default="10/minute", alias="RATE_LIMIT_COMMAND")

    # Background services
    background_tasks_enabled: bool = Field(default=True, alias="BACKGROUND_TASKS_ENABLED")
    metrics_collection_interval: int = Field(default=60, alias="METRICS_COLLECTION_INTERVAL")
    metrics_retention_days: int = Field(default=90, alias="METRICS_RETENTION_DAYS")

    # Alert thresholds (percent)
    alert_cpu_threshold: float = Field(default=80.0, alias="ALERT_CPU_THRESHOLD")
    alert_memory_threshold: float = Field(default=85.0, alias="ALERT_MEMORY_THRESHOLD")
    alert_disk_threshold: float = Field(default=85.0, alias="ALERT_DISK_THRESHOLD")
    alert_cooldown_minutes: int = Field(default=15, alias="ALERT_COOLDOWN_MINUTES")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def get_openai_api_key(self) -> Optional[str]:
        """Get OpenAI key from env, optionally from a secrets file."""
        key_file = os.getenv("OPENAI_API_KEY_FILE")
        if key_file and Path(key_file).exists():
            return Path(key_file).read_text().strip()
        return self.openai_api_key


# Global settings instance
settings = Settings()
