"""Guarded order transitions (start preparing, mark ready)."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from kitchenboard.adapters.orders_api import (
    ErrorKind,
    OrderGateway,
    OrdersApiError,
    classify_error,
    describe_error,
)
from kitchenboard.core.logging import log_event
from kitchenboard.core.metrics import KPIStore, METRICS
from kitchenboard.core.notices import add_notice
from kitchenboard.core.sync import OrderSyncEngine
from kitchenboard.models import Order, OrderStatus
from kitchenboard.settings import AppSettings

log = logging.getLogger("kitchenboard.actions")

START_PREPARING = "start_preparing"
MARK_READY = "mark_ready"

_SOURCE_STATUS = {
    START_PREPARING: OrderStatus.RECEIVED.value,
    MARK_READY: OrderStatus.PREPARING.value,
}

_FALLBACK_MESSAGES = {
    START_PREPARING: "Failed to start preparing the order",
    MARK_READY: "Failed to mark the order as ready",
}


class TransitionNotAllowed(ValueError):
    """Raised when the displayed order is not in the action's source state."""

    def __init__(self, action: str, order_id: str, status: str) -> None:
        super().__init__(f"cannot {action.replace('_', ' ')} order {order_id} in status {status or '?'}")
        self.action = action
        self.order_id = order_id
        self.status = status


class ActionDispatcher:
    """Issues transitions with at most one request in flight per order."""

    def __init__(
        self,
        gateway: OrderGateway,
        engine: OrderSyncEngine,
        *,
        settings: AppSettings,
        metrics: KPIStore | None = None,
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._settings = settings
        self._metrics = metrics or METRICS
        self._in_flight: set[str] = set()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def is_processing(self, order_id: str) -> bool:
        return order_id in self._in_flight

    async def start_preparing(self, order_id: str) -> bool:
        """RECEIVED -> PREPARING. Returns False when already in flight."""

        return await self._dispatch(START_PREPARING, order_id, self._gateway.start_preparing)

    async def mark_ready(self, order_id: str) -> bool:
        """PREPARING -> READY. Returns False when already in flight."""

        return await self._dispatch(MARK_READY, order_id, self._gateway.mark_ready)

    def _check_source_state(self, action: str, order_id: str) -> None:
        order = self._engine.find(order_id)
        if order is None:
            return
        expected = _SOURCE_STATUS[action]
        if order.status != expected:
            raise TransitionNotAllowed(action, order_id, order.status)

    async def _dispatch(
        self,
        action: str,
        order_id: str,
        call: Callable[[str], Awaitable[Order | None]],
    ) -> bool:
        if order_id in self._in_flight:
            self._metrics.increment_counter("actions_skipped_total")
            log.debug("Ignoring %s for %s: request already in flight", action, order_id)
            return False
        self._check_source_state(action, order_id)

        self._in_flight.add(order_id)
        self._metrics.update_in_flight(len(self._in_flight))
        self._metrics.increment_counter("actions_total")
        try:
            try:
                await call(order_id)
            except Exception as exc:
                self._report_failure(action, order_id, exc)
                if isinstance(exc, OrdersApiError):
                    raise
                raise OrdersApiError(ErrorKind.UNKNOWN, str(exc) or _FALLBACK_MESSAGES[action]) from exc
            log_event("actions", f"{action}.ok", "order transition accepted", order_id=order_id)
            await self._engine.refresh()
        finally:
            self._in_flight.discard(order_id)
            self._metrics.update_in_flight(len(self._in_flight))
        return True

    def _report_failure(self, action: str, order_id: str, exc: Exception) -> None:
        kind = classify_error(exc)
        message = describe_error(exc, self._settings, fallback=_FALLBACK_MESSAGES[action])
        self._metrics.increment_counter("actions_failed_total")
        add_notice(action, order_id, message, kind=kind.value)
        log_event(
            "actions",
            f"{action}.fail",
            message,
            level="ERROR",
            order_id=order_id,
            kind=kind.value,
        )
