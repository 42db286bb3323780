"""Derived facts shown on an order card: age, totals and labels."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from kitchenboard.models import Order, OrderItem, OrderStatus

CENT = Decimal("0.01")

_STATUS_TEXT = {
    OrderStatus.RECEIVED.value: "New order",
    OrderStatus.PREPARING.value: "Cooking",
    OrderStatus.READY.value: "Ready",
}

_ACTIONS = {
    OrderStatus.RECEIVED.value: "start_preparing",
    OrderStatus.PREPARING.value: "mark_ready",
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse an ISO 8601 value into an aware datetime, or ``None``."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def reference_time(order: Order) -> datetime | None:
    """Timestamp of the most recent state change of ``order``."""

    for stamp in (order.ready_at, order.preparing_at, order.received_at):
        if stamp is not None:
            return _as_utc(stamp)
    return None


def age_label(timestamp: datetime | str | None, now: datetime | None = None) -> str:
    """Render ``now - timestamp`` as ``"N min ago"`` or ``"N sec ago"``.

    Future timestamps (clock skew) clamp to zero. An absent or unparsable
    timestamp yields an empty string.
    """

    moment = parse_timestamp(timestamp)
    if moment is None:
        return ""
    current = _as_utc(now) if now is not None else datetime.now(tz=UTC)
    elapsed = max(0, int((current - moment).total_seconds()))
    minutes, seconds = divmod(elapsed, 60)
    if minutes >= 1:
        return f"{minutes} min ago"
    return f"{seconds} sec ago"


def _line_amount(item: OrderItem) -> Decimal | None:
    if item.price is None:
        return None
    return Decimal(str(item.price)) * item.quantity


def line_total(item: OrderItem) -> Decimal | None:
    amount = _line_amount(item)
    if amount is None:
        return None
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def order_total(order: Order) -> Decimal:
    """Sum of priced lines, rounded once; unpriced lines contribute nothing."""

    total = Decimal("0")
    for item in order.items:
        amount = _line_amount(item)
        if amount is not None:
            total += amount
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal | float | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def status_text(status: str) -> str:
    return _STATUS_TEXT.get(status, status)


def short_id(order_id: str | None) -> str:
    if not order_id:
        return "N/A"
    return str(order_id)[-4:]


def customer_label(order: Order) -> str:
    return order.customer_name or "N/A"


def available_action(order: Order) -> str | None:
    """Action offered for ``order``; READY and unknown statuses offer none."""

    return _ACTIONS.get(order.status)
