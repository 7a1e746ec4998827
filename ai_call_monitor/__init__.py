"""
AI Call Monitor.

Records latency, token usage and cost of outbound AI API calls made
through httpx, without changing call sites.
"""

from .monitor import build_monitor, configure_logging

__all__ = ["build_monitor", "configure_logging"]
