"""
Cloud Console - Database Migrations

Handles schema migrations and initial data setup.
"""

import asyncio

import aiosqlite
import bcrypt
import structlog

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


async def run_migrations(db: aiosqlite.Connection, seed_demo_data: bool = True):
    """Run all pending migrations on an open connection."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    await db.commit()

    cursor = await db.execute("SELECT name FROM migrations")
    applied = {row[0] for row in await cursor.fetchall()}

    migrations = [
        ("001_initial_schema", migrate_001_initial_schema),
        ("002_audit_log", migrate_002_audit_log),
    ]
    if seed_demo_data:
        migrations.append(("003_demo_data", migrate_003_demo_data))

    for name, func in migrations:
        if name not in applied:
            logger.info("Applying migration", migration=name)
            await func(db)
            await db.execute("INSERT INTO migrations (name) VALUES (?)", (name,))
            await db.commit()


async def migrate_001_initial_schema(db):
    """Initial database schema."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            email TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS virtual_machines (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            status TEXT NOT NULL,
            template TEXT NOT NULL,
            cpu_cores INTEGER NOT NULL,
            memory INTEGER NOT NULL,
            storage INTEGER NOT NULL,
            network TEXT NOT NULL,
            cpu_usage REAL NOT NULL DEFAULT 0,
            memory_usage REAL NOT NULL DEFAULT 0,
            uptime TEXT NOT NULL DEFAULT '0d 0h',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            user_id INTEGER,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE SET NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS alerts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL CHECK (type IN ('warning', 'error', 'info')),
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            severity TEXT NOT NULL CHECK (severity IN ('low', 'medium', 'high', 'critical')),
            is_read INTEGER NOT NULL DEFAULT 0,
            resource_id INTEGER,
            resource_type TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS ai_recommendations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            confidence REAL NOT NULL,
            priority TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'applied', 'dismissed')),
            resource_id INTEGER,
            resource_type TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS system_metrics (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            total_servers INTEGER NOT NULL,
            storage_used REAL NOT NULL,
            storage_total REAL NOT NULL,
            network_traffic REAL NOT NULL,
            health_score REAL NOT NULL,
            cpu_usage_avg REAL NOT NULL,
            memory_usage_avg REAL NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            key TEXT UNIQUE NOT NULL,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    await db.execute("CREATE INDEX IF NOT EXISTS idx_alerts_is_read ON alerts(is_read)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_recommendations_status ON ai_recommendations(status)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_system_metrics_ts ON system_metrics(timestamp)")


async def migrate_002_audit_log(db):
    """Audit log for executed commands and service actions."""
    await db.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            details TEXT,
            result TEXT,
            ip_address TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_created ON audit_log(created_at)")


async def migrate_003_demo_data(db):
    """Seed an admin account and a small demo inventory."""
    from cloudpanel.config import settings

    cursor = await db.execute(
        """INSERT OR IGNORE INTO users (username, password_hash, email, role)
           VALUES (?, ?, ?, ?)""",
        ("admin", hash_password(settings.seed_admin_password), "admin@cloudai.com", "admin")
    )
    admin_id = cursor.lastrowid or 1

    await db.executemany(
        """INSERT INTO virtual_machines
           (name, status, template, cpu_cores, memory, storage, network,
            cpu_usage, memory_usage, uptime, user_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            ("vm-prod-01", "running", "Ubuntu 22.04 LTS", 4, 8, 120, "Production Network", 65, 72, "12d 4h", admin_id),
            ("vm-dev-02", "maintenance", "CentOS 8", 2, 4, 80, "Development Network", 45, 58, "6d 2h", admin_id),
            ("vm-backup-03", "running", "Ubuntu 22.04 LTS", 8, 16, 500, "Default Network", 32, 41, "25d 8h", admin_id),
        ]
    )

    await db.executemany(
        """INSERT INTO alerts (type, title, message, severity, is_read, resource_id, resource_type)
           VALUES (?, ?, ?, ?, 0, ?, ?)""",
        [
            ("warning", "High CPU Usage", "vm-prod-01 CPU usage is above 80% for the last 10 minutes", "medium", 1, "vm"),
            ("error", "Storage Almost Full", "Storage pool is at 85% capacity", "high", None, "storage"),
            ("info", "Security Update Available", "Critical security patches available for 3 servers", "medium", None, "server"),
        ]
    )

    await db.execute(
        """INSERT INTO system_metrics
           (total_servers, storage_used, storage_total, network_traffic,
            health_score, cpu_usage_avg, memory_usage_avg)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (24, 2.4, 3.2, 1.2, 94, 65, 58)
    )


async def _migrate_file(db_path: str, seed_demo_data: bool):
    async with aiosqlite.connect(db_path) as db:
        await run_migrations(db, seed_demo_data=seed_demo_data)


if __name__ == "__main__":
    import sys

    db_path = sys.argv[1] if len(sys.argv) > 1 else "/data/cloud-console.db"
    asyncio.run(_migrate_file(db_path, seed_demo_data="--no-seed" not in sys.argv))
