"""
Timing helper for OBS round-trips.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit one METRIC_TIMER event per measured block via observability.logger
- Mark whether the block raised, without suppressing the exception

Durations use monotonic time; event timestamps (ts_ms) use wall-clock
time for human readability.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the enclosed block and emit exactly one metric.

    Usage:
        with timed("obs_handshake", details={"url": url}):
            await transport.connect(url, password)
    """
    start_ns = time.monotonic_ns()
    ok = False
    try:
        yield
        ok = True
    finally:
        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "ok": ok,
            "details": details or {},
        })
