"""Plain view models of the board for the CLI and the web dashboard."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from kitchenboard.core.sync import SyncState
from kitchenboard.core.timing import (
    age_label,
    available_action,
    customer_label,
    format_money,
    line_total,
    order_total,
    reference_time,
    short_id,
    status_text,
)
from kitchenboard.models import KNOWN_STATUSES, Order

GROUP_ORDER: tuple[str, ...] = (*KNOWN_STATUSES, "OTHER")


def order_view(order: Order, now: datetime | None = None, *, processing: bool = False) -> dict[str, Any]:
    items = [
        {
            "label": f"{item.quantity}x {item.name}",
            "amount": format_money(line_total(item)),
        }
        for item in order.items
    ]
    return {
        "order_id": order.order_id,
        "short_id": short_id(order.order_id),
        "customer": customer_label(order),
        "status": order.status,
        "status_text": status_text(order.status),
        "age": age_label(reference_time(order), now),
        "items": items,
        "total": format_money(order_total(order)) if items else None,
        "action": available_action(order),
        "processing": processing,
    }


def board_payload(
    state: SyncState,
    in_flight: Iterable[str] = (),
    now: datetime | None = None,
) -> dict[str, Any]:
    """Group the engine snapshot by status for display."""

    busy = set(in_flight)
    views = [order_view(order, now, processing=order.order_id in busy) for order in state.orders]
    groups: dict[str, list[dict[str, Any]]] = {name: [] for name in GROUP_ORDER}
    for view in views:
        key = view["status"] if view["status"] in KNOWN_STATUSES else "OTHER"
        groups[key].append(view)
    error = state.error
    return {
        "filter": state.filter,
        "loading": state.loading,
        "error": None if error is None else {"kind": error.kind.value, "message": error.message},
        "last_updated": state.last_updated.isoformat(timespec="seconds") if state.last_updated else None,
        "orders": views,
        "groups": groups,
        "counts": {name: len(entries) for name, entries in groups.items()},
        "in_flight": sorted(busy),
    }


_ACTION_LABELS = {"start_preparing": "Start Cooking", "mark_ready": "Mark as Ready"}


def render_board(payload: dict[str, Any]) -> str:
    """Text rendering of ``board_payload`` grouped by status."""

    lines: list[str] = []
    scope = payload.get("filter") or "all"
    header = f"Orders ({scope})"
    if payload.get("loading"):
        header += " [loading]"
    lines.append(header)
    error = payload.get("error")
    if error:
        lines.append(f"! {error['message']}")
    if not payload.get("orders"):
        lines.append("No orders found")
        return "\n".join(lines)

    for name in GROUP_ORDER:
        entries = payload["groups"].get(name) or []
        if not entries:
            continue
        lines.append("")
        lines.append(f"== {name} ({len(entries)}) ==")
        for view in entries:
            lines.append(
                f"#{view['short_id']}  {view['customer']}  {view['status_text']}  {view['age']}".rstrip()
            )
            for item in view["items"]:
                amount = f"  ${item['amount']}" if item["amount"] is not None else ""
                lines.append(f"    {item['label']}{amount}")
            if view["total"] is not None:
                lines.append(f"    Total: ${view['total']}")
            if view["processing"]:
                lines.append("    [Processing...]")
            elif view["action"]:
                lines.append(f"    -> {_ACTION_LABELS[view['action']]}")
    return "\n".join(lines)
