"""
Bounded in-memory metrics store.

Keeps the most recent telemetry records and answers windowed aggregate
queries over them. Nothing is persisted; the log lives and dies with the
process.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Deque, Dict, List, Optional

import structlog

from ..core.clock import epoch_ms
from .models import CostAggregate, TelemetryRecord

logger = structlog.wrap_logger(logging.getLogger(__name__), wrapper_class=structlog.stdlib.BoundLogger)

CAPACITY = 1000
CACHE_TTL_MS = 6000

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS


@dataclass(frozen=True)
class CachedAggregate:
    """A computed cost aggregate and the time it was computed."""
    value: CostAggregate
    computed_at: int  # epoch ms

    def is_expired(self, now: int, ttl_ms: int) -> bool:
        return now - self.computed_at >= ttl_ms


def start_of_day_ms(now: int) -> int:
    """Epoch ms of local midnight on the day containing ``now``."""
    midnight = datetime.fromtimestamp(now / 1000).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return int(midnight.timestamp() * 1000)


class MetricsStore:
    """Append-only, capacity-bounded log of telemetry records.

    Once ``capacity`` is exceeded the oldest record is evicted, so the
    store always holds the most recent events in insertion order. The
    cost aggregate is cached for ``cache_ttl_ms`` and invalidated on
    every append.

    Usage:
        store = MetricsStore()
        store.record(record)
        store.average_latency(window_minutes=15)
        store.cost_aggregate().cost_per_model
    """

    def __init__(
        self,
        capacity: int = CAPACITY,
        cache_ttl_ms: int = CACHE_TTL_MS,
        clock: Callable[[], int] = epoch_ms,
    ):
        """Initialize an empty store.

        Args:
            capacity: Maximum number of retained records
            cache_ttl_ms: Lifetime of a computed cost aggregate
            clock: Source of the current epoch time in ms
        """
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if cache_ttl_ms < 0:
            raise ValueError("cache_ttl_ms cannot be negative")

        self.capacity = capacity
        self.cache_ttl_ms = cache_ttl_ms
        self._clock = clock
        self._records: Deque[TelemetryRecord] = deque(maxlen=capacity)
        self._cache: Optional[CachedAggregate] = None

    def __len__(self) -> int:
        return len(self._records)

    def record(self, record: TelemetryRecord) -> None:
        """Append a record, evicting the oldest beyond capacity.

        Field ranges are validated by TelemetryRecord itself; the store
        accepts any record it is given.
        """
        self._records.append(record)
        self._cache = None

    def snapshot(self) -> List[TelemetryRecord]:
        """All retained records, oldest first.

        The copy is taken in one step, so readers on other threads never
        iterate the live log while calls are being recorded.
        """
        return list(self._records)

    def query(self, window_minutes: float = 60) -> List[TelemetryRecord]:
        """Records newer than ``window_minutes`` ago, in insertion order.

        Filtering is by timestamp value, so records submitted out of
        timestamp order are handled correctly.
        """
        cutoff = self._clock() - window_minutes * MINUTE_MS
        return [r for r in self.snapshot() if r.timestamp > cutoff]

    def average_latency(self, window_minutes: float = 60) -> float:
        """Mean latency in ms over the window, 0.0 when empty."""
        records = self.query(window_minutes)
        if not records:
            return 0.0
        return sum(r.latency for r in records) / len(records)

    def error_rate(self, window_minutes: float = 60) -> float:
        """Percentage (0-100) of failed calls in the window, 0.0 when empty."""
        records = self.query(window_minutes)
        if not records:
            return 0.0
        failures = sum(1 for r in records if not r.success)
        return failures / len(records) * 100

    def throughput(self, window_minutes: float = 60) -> float:
        """Calls per hour over the window.

        Normalized to an hourly rate whatever the window size; 0.0 for an
        empty or non-positive window.
        """
        if window_minutes <= 0:
            return 0.0
        return len(self.query(window_minutes)) / (window_minutes / 60)

    def cost_aggregate(self) -> CostAggregate:
        """Cost totals over the whole retained log (not windowed).

        Daily cost counts records since local midnight; weekly and monthly
        counts start 7 and 30 days before that midnight. A cached result
        younger than ``cache_ttl_ms`` is returned as-is, so polling
        consumers may see values up to one TTL stale.

        Returns:
            CostAggregate, identical object while the cache is valid
        """
        now = self._clock()
        if self._cache is not None and not self._cache.is_expired(now, self.cache_ttl_ms):
            return self._cache.value

        today = start_of_day_ms(now)
        week_start = today - 7 * DAY_MS
        month_start = today - 30 * DAY_MS

        daily_cost = weekly_cost = monthly_cost = 0.0
        records = self.snapshot()
        cost_per_model: Dict[str, float] = {}
        for r in records:
            if r.timestamp > today:
                daily_cost += r.cost
            if r.timestamp > week_start:
                weekly_cost += r.cost
            if r.timestamp > month_start:
                monthly_cost += r.cost
            cost_per_model[r.model_name] = cost_per_model.get(r.model_name, 0.0) + r.cost

        aggregate = CostAggregate(
            daily_cost=daily_cost,
            weekly_cost=weekly_cost,
            monthly_cost=monthly_cost,
            estimated_monthly_total=daily_cost / 30,
            cost_per_model=MappingProxyType(cost_per_model),
        )
        self._cache = CachedAggregate(value=aggregate, computed_at=now)
        logger.debug("cost_aggregate_computed", records=len(records))
        return aggregate
