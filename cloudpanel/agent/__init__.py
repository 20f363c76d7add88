"""
Cloud Console - Infrastructure Agent Package
"""

from .infrastructure import InfrastructureAgent, agent
from .models import (
    CommandResult,
    ContainerInfo,
    ProcessInfo,
    ResourceMetrics,
    ServiceActionResult,
    ServiceInfo,
    ServiceStatus,
    SystemInfo,
)

__all__ = [
    "InfrastructureAgent",
    "agent",
    "CommandResult",
    "ContainerInfo",
    "ProcessInfo",
    "ResourceMetrics",
    "ServiceActionResult",
    "ServiceInfo",
    "ServiceStatus",
    "SystemInfo",
]
