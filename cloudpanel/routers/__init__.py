"""
Cloud Console - API Routers Package
"""

from . import dashboard, vms, alerts, ai, metrics, charts, app_settings, agent, sse

__all__ = [
    "dashboard",
    "vms",
    "alerts",
    "ai",
    "metrics",
    "charts",
    "app_settings",
    "agent",
    "sse",
]
