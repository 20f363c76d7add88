"""
Cloud Console - Rate Limiter

Shared slowapi limiter so routers can decorate individual endpoints.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from cloudpanel.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
)


def command_limit() -> str:
    """Limit for command execution, read per request so it can be changed at runtime."""
    return settings.rate_limit_command
