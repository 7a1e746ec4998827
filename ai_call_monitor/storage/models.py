"""
Data models for the metrics store.

Defines telemetry records and derived cost aggregates.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass(frozen=True)
class TelemetryRecord:
    """Immutable record of one completed outbound API call.

    Created once when the call settles and never modified afterwards;
    it leaves the store only through FIFO eviction.
    """
    timestamp: int  # epoch ms
    model_name: str
    endpoint: str
    latency: float  # ms
    success: bool
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    error_message: Optional[str] = None
    method: str = "GET"
    status_code: Optional[int] = None

    def __post_init__(self):
        """Validate ranges and the success/error_message pairing."""
        if self.latency < 0:
            raise ValueError("latency cannot be negative")
        if self.input_tokens < 0:
            raise ValueError("input_tokens cannot be negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens cannot be negative")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")
        if self.success and self.error_message is not None:
            raise ValueError("error_message must be None for a successful call")
        if not self.success and self.error_message is None:
            raise ValueError("error_message is required for a failed call")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class CostAggregate:
    """Cost totals over the retained log.

    ``estimated_monthly_total`` is ``daily_cost / 30``: a run-rate figure
    carried over unchanged for dashboard compatibility, not a calendar
    projection of the month.
    """
    daily_cost: float
    weekly_cost: float
    monthly_cost: float
    estimated_monthly_total: float
    cost_per_model: Mapping[str, float] = field(default_factory=dict)
