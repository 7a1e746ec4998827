"""
In-memory storage for call telemetry.
"""

from .metrics_store import MetricsStore
from .models import CostAggregate, TelemetryRecord

__all__ = ["MetricsStore", "CostAggregate", "TelemetryRecord"]
