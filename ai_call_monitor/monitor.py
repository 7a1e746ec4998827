"""
Composition root for AI call monitoring.

Wires a metrics store and a call interceptor from configuration, and
sets up structured logging for applications that want it.
"""

import logging
import sys
from typing import Optional

import structlog

from ai_call_monitor.config.loader import MonitorConfig
from ai_call_monitor.sdk.interceptor import CallInterceptor
from ai_call_monitor.storage.metrics_store import MetricsStore


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Route structlog output through stdlib logging.

    Args:
        level: Stdlib log level name
        json_logs: Render JSON lines instead of the console format
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper(), force=True)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_monitor(config: Optional[MonitorConfig] = None) -> CallInterceptor:
    """Create an inactive interceptor backed by a fresh metrics store.

    The store is reachable as ``interceptor.store``; pass the interceptor
    to whatever needs to enable monitoring or read metrics.

    Args:
        config: Monitor configuration, defaults if omitted

    Returns:
        CallInterceptor in the inactive state
    """
    config = config or MonitorConfig()
    store = MetricsStore(
        capacity=config.store.capacity,
        cache_ttl_ms=config.store.cache_ttl_ms,
    )
    return CallInterceptor(store, config=config.intercept, pricing=config.pricing)
