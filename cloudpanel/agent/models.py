"""
Cloud Console Agent - Result Types

Fixed-shape results returned by the infrastructure agent. Every type has a
zero-valued default so a failed query still produces a complete payload.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ServiceStatus(str, Enum):
    """Service operational state as reported by systemd."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class SystemInfo:
    """Host identity and load."""
    hostname: str
    platform: str
    arch: str
    uptime: float
    load_average: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CpuMetrics:
    usage: float = 0.0
    cores: int = 1
    model: str = "Unknown CPU"


@dataclass
class MemoryMetrics:
    total: int = 0
    used: int = 0
    free: int = 0
    usage: float = 0.0


@dataclass
class DiskMetrics:
    total: int = 0
    used: int = 0
    free: int = 0
    usage: float = 0.0


@dataclass
class NetworkMetrics:
    bytes_received: int = 0
    bytes_sent: int = 0
    packets_received: int = 0
    packets_sent: int = 0


@dataclass
class ResourceMetrics:
    """Snapshot of CPU, memory, root disk and network counters."""
    cpu: CpuMetrics = field(default_factory=CpuMetrics)
    memory: MemoryMetrics = field(default_factory=MemoryMetrics)
    disk: DiskMetrics = field(default_factory=DiskMetrics)
    network: NetworkMetrics = field(default_factory=NetworkMetrics)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProcessInfo:
    pid: int = 0
    name: str = "unknown"
    cpu: float = 0.0
    memory: float = 0.0
    status: str = "unknown"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ServiceInfo:
    name: str
    status: ServiceStatus
    enabled: bool = True
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "enabled": self.enabled,
            "description": self.description,
        }


@dataclass
class ContainerInfo:
    id: str = ""
    image: str = ""
    command: str = ""
    created: str = ""
    status: str = ""
    ports: str = ""
    name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CommandResult:
    """Outcome of an operator-supplied command."""
    stdout: str
    stderr: str
    success: bool
    exit_code: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ServiceActionResult:
    """Result of a service action."""
    success: bool
    message: str

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}
