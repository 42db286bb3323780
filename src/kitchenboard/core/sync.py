"""Order list synchronization: periodic and on-demand refresh from the order service.

``OrderSyncEngine`` is the single owner of what the board displays. Every
refresh is tagged with an increasing sequence number and a response is only
applied when it is newer than the last applied one, so a slow response to an
earlier filter can never overwrite a later one. Once ``stop()`` has been
called no pending response mutates state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Callable

from kitchenboard.adapters.orders_api import (
    ErrorKind,
    OrderGateway,
    classify_error,
    describe_error,
)
from kitchenboard.core.logging import log_event
from kitchenboard.core.metrics import KPIStore, METRICS
from kitchenboard.models import Order
from kitchenboard.settings import AppSettings

log = logging.getLogger("kitchenboard.sync")

Listener = Callable[["SyncState"], None]


@dataclass(frozen=True, slots=True)
class SyncError:
    """Classified refresh failure kept for display."""

    kind: ErrorKind
    message: str
    status_code: int | None = None


@dataclass(frozen=True, slots=True)
class SyncState:
    """Immutable snapshot of the engine's displayed state."""

    orders: tuple[Order, ...] = ()
    loading: bool = False
    error: SyncError | None = None
    filter: str | None = None
    last_updated: datetime | None = None
    seq: int = field(default=0, compare=False)


def normalise_filter(value: str | None) -> str | None:
    """``None`` and blank strings mean "all statuses"."""

    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None


class OrderSyncEngine:
    """Owns the order list, loading flag, error and filter."""

    def __init__(
        self,
        gateway: OrderGateway,
        *,
        settings: AppSettings,
        interval_sec: float | None = None,
        initial_filter: str | None = None,
        metrics: KPIStore | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._interval = float(interval_sec if interval_sec is not None else settings.refresh_interval_sec)
        self._metrics = metrics or METRICS
        self._state = SyncState(filter=normalise_filter(initial_filter))
        self._issued_seq = 0
        self._applied_seq = 0
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self._listeners: list[Listener] = []

    # -------------------- state --------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def orders(self) -> tuple[Order, ...]:
        return self._state.orders

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> SyncError | None:
        return self._state.error

    @property
    def filter(self) -> str | None:
        return self._state.filter

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def active(self) -> bool:
        """True while the periodic refresh task is running."""
        return self._task is not None and not self._task.done()

    def find(self, order_id: str) -> Order | None:
        for order in self._state.orders:
            if order.order_id == order_id:
                return order
        return None

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def _publish(self, state: SyncState) -> None:
        self._state = state
        self._metrics.update_orders_displayed(len(state.orders))
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception:
                log.exception("State listener failed")

    # -------------------- operations --------------------

    async def set_filter(self, new_filter: str | None) -> SyncState:
        """Switch the status filter and refresh; the old list stays until then."""

        value = normalise_filter(new_filter)
        if not self._stopped:
            self._publish(replace(self._state, filter=value))
        log.info("Filter set to %s", value or "all")
        return await self.refresh()

    async def refresh(self) -> SyncState:
        """Fetch a fresh snapshot for the current filter.

        Fetch failures are recorded in ``state.error`` and never raised.
        """

        if self._stopped:
            return self._state

        self._issued_seq += 1
        seq = self._issued_seq
        status = self._state.filter
        self._metrics.increment_counter("refresh_total")
        self._publish(replace(self._state, loading=True, error=None))

        try:
            orders = await self._gateway.fetch_orders(status)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._apply_failure(seq, exc)
        else:
            self._apply_success(seq, status, orders or [])
        return self._state

    def _is_current(self, seq: int) -> bool:
        if self._stopped:
            log.debug("Dropping refresh #%d result after stop", seq)
            return False
        if seq <= self._applied_seq:
            self._metrics.increment_counter("refresh_stale_total")
            log.debug("Dropping stale refresh #%d (applied=#%d)", seq, self._applied_seq)
            return False
        return True

    def _apply_success(self, seq: int, status: str | None, orders: list[Order]) -> None:
        if not self._is_current(seq):
            return
        self._applied_seq = seq
        self._publish(
            replace(
                self._state,
                orders=tuple(orders),
                loading=seq < self._issued_seq,
                error=None,
                last_updated=datetime.now(tz=UTC),
                seq=seq,
            )
        )
        log.debug("Refresh #%d applied: %d orders (status=%s)", seq, len(orders), status or "all")

    def _apply_failure(self, seq: int, exc: Exception) -> None:
        if not self._is_current(seq):
            return
        self._metrics.increment_counter("refresh_failed_total")
        kind = classify_error(exc)
        message = describe_error(exc, self._settings)
        self._applied_seq = seq
        self._publish(
            replace(
                self._state,
                loading=seq < self._issued_seq,
                error=SyncError(kind=kind, message=message, status_code=getattr(exc, "status_code", None)),
                seq=seq,
            )
        )
        log_event(
            "sync",
            "refresh.fail",
            message,
            level="ERROR" if kind is not ErrorKind.UNKNOWN else "WARN",
            kind=kind.value,
            filter=self._state.filter or "all",
        )

    # -------------------- lifecycle --------------------

    async def start(self) -> None:
        """Refresh now and then every ``interval`` seconds until ``stop()``."""

        if self.active:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run(), name="kitchenboard-sync")
        log.info("Sync engine started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        """Cancel the periodic task; later responses are ignored."""

        if not self._stopped and self._state.loading:
            self._publish(replace(self._state, loading=False))
        self._stopped = True
        self._applied_seq = self._issued_seq
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        log.info("Sync engine stopped")

    async def __aenter__(self) -> "OrderSyncEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_due = loop.time()
        while not self._stopped:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Periodic refresh crashed; retrying on schedule")
            next_due += self._interval
            await asyncio.sleep(max(0.0, next_due - loop.time()))
