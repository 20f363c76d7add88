"""
Cloud Console - Services Package

Business logic services for the API.
"""

from .sse import sse_manager, Channels
from .ai_advisor import ai_advisor
from .alert_manager import alert_manager
from .metrics_collector import metrics_collector

__all__ = ["sse_manager", "Channels", "ai_advisor", "alert_manager", "metrics_collector"]
