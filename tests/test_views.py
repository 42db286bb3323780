from __future__ import annotations

from datetime import UTC, datetime

from kitchenboard.adapters.orders_api import ErrorKind
from kitchenboard.core.sync import SyncError, SyncState
from kitchenboard.models import Order
from kitchenboard.views import board_payload, order_view, render_board

from tests.fakes.fake_orders import BASE_TIME, make_order


def _state(*raw, **fields) -> SyncState:
    orders = tuple(Order.model_validate(item) for item in raw)
    return SyncState(orders=orders, **fields)


def test_order_view_fields() -> None:
    order = Order.model_validate(
        make_order(
            "65a1b2c3d4",
            "PREPARING",
            items=[{"name": "Burger", "quantity": 2, "price": 10.0}, {"name": "Water", "quantity": 1}],
        )
    )

    view = order_view(order, BASE_TIME)

    assert view["short_id"] == "c3d4"
    assert view["status_text"] == "Cooking"
    assert view["age"] == "3 min ago"
    assert view["items"] == [
        {"label": "2x Burger", "amount": "20.00"},
        {"label": "1x Water", "amount": None},
    ]
    assert view["total"] == "20.00"
    assert view["action"] == "mark_ready"
    assert view["processing"] is False


def test_board_payload_groups_by_status() -> None:
    state = _state(
        make_order("ord-0001", "RECEIVED"),
        make_order("ord-0002", "READY"),
        make_order("ord-0003", "CANCELLED"),
        last_updated=datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
    )

    payload = board_payload(state, in_flight={"ord-0001"}, now=BASE_TIME)

    assert payload["counts"] == {"RECEIVED": 1, "PREPARING": 0, "READY": 1, "OTHER": 1}
    assert payload["groups"]["OTHER"][0]["action"] is None
    assert payload["orders"][0]["processing"] is True
    assert payload["in_flight"] == ["ord-0001"]
    assert payload["error"] is None
    assert payload["last_updated"] == "2025-01-01T12:00:00+00:00"


def test_render_board_text() -> None:
    state = _state(make_order("ord-0001", "RECEIVED", customerName="Ana"), make_order("ord-0002", "PREPARING"))

    text = render_board(board_payload(state, in_flight={"ord-0002"}, now=BASE_TIME))

    assert text.splitlines()[0] == "Orders (all)"
    assert "== RECEIVED (1) ==" in text
    assert "#0001  Ana  New order  5 min ago" in text
    assert "    2x Burger  $20.00" in text
    assert "    Total: $20.00" in text
    assert "-> Start Cooking" in text
    assert "[Processing...]" in text
    assert "Mark as Ready" not in text


def test_render_board_empty_and_error() -> None:
    state = SyncState(
        loading=True,
        filter="READY",
        error=SyncError(kind=ErrorKind.UNREACHABLE, message="Could not connect to the server."),
    )

    lines = render_board(board_payload(state)).splitlines()

    assert lines == ["Orders (READY) [loading]", "! Could not connect to the server.", "No orders found"]
