"""Clock sources shared by the store and the interceptor."""

import time


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def monotonic_ms() -> float:
    """Monotonic timer in milliseconds, for measuring durations only."""
    return time.perf_counter() * 1000.0
