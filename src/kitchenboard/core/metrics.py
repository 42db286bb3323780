"""In-memory KPI tracking for the kitchen board."""

from __future__ import annotations

import time
from collections import deque
from statistics import median
from threading import Lock
from typing import Any

ERROR_WINDOW_SEC = 60.0
LATENCY_SAMPLES = 50

DEFAULT_COUNTERS = (
    "refresh_total",
    "refresh_failed_total",
    "refresh_stale_total",
    "actions_total",
    "actions_failed_total",
    "actions_skipped_total",
)


class KPIStore:
    """Thread-safe store for lightweight KPIs."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = {}
        self._errors: deque[float] = deque()
        self._fetch_latency_ms: deque[float] = deque(maxlen=LATENCY_SAMPLES)
        self._orders_displayed = 0
        self._in_flight = 0
        self._initialize_default_counters()

    def _initialize_default_counters(self) -> None:
        for key in DEFAULT_COUNTERS:
            self._counters.setdefault(key, 0)

    def _prune(self, container: deque[float], now: float, window: float) -> None:
        while container and now - container[0] > window:
            container.popleft()

    def record_error(self, now: float | None = None) -> None:
        now_ts = now or time.time()
        with self._lock:
            self._errors.append(now_ts)
            self._prune(self._errors, now_ts, ERROR_WINDOW_SEC)

    def record_fetch_latency(self, ms: float) -> None:
        """Record a list-orders round trip in milliseconds."""

        if ms < 0:
            return
        with self._lock:
            self._fetch_latency_ms.append(float(ms))

    def update_orders_displayed(self, value: int) -> None:
        with self._lock:
            self._orders_displayed = max(0, value)

    def update_in_flight(self, value: int) -> None:
        with self._lock:
            self._in_flight = max(0, value)

    def increment_counter(self, key: str, amount: int = 1) -> None:
        """Increment a named counter used for diagnostics."""

        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def get_counter(self, key: str) -> int:
        """Return a counter value (defaults to zero)."""

        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, Any]:
        now_ts = time.time()
        with self._lock:
            self._prune(self._errors, now_ts, ERROR_WINDOW_SEC)
            latency = float(median(self._fetch_latency_ms)) if self._fetch_latency_ms else None
            return {
                "orders_displayed": self._orders_displayed,
                "actions_in_flight": self._in_flight,
                "errors_1m": len(self._errors),
                "fetch_latency_ms_median": latency,
                "counters": dict(self._counters),
            }

    def reset(self) -> None:
        """Reset stored data (test helper)."""

        with self._lock:
            self._errors.clear()
            self._fetch_latency_ms.clear()
            self._orders_displayed = 0
            self._in_flight = 0
            self._counters.clear()
            self._initialize_default_counters()


METRICS = KPIStore()


def snapshot_kpis() -> dict[str, Any]:
    """Return a snapshot of current KPI values."""

    return METRICS.snapshot()
