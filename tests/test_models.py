from __future__ import annotations

from datetime import UTC, datetime

from kitchenboard.models import Order, OrderStatus


def test_order_accepts_wire_aliases() -> None:
    order = Order.model_validate(
        {
            "orderId": 1234,
            "customerName": "Ana",
            "status": "PREPARING",
            "items": [{"name": "Taco", "quantity": 3}],
            "receivedAt": "2025-01-01T11:50:00Z",
            "preparingAt": "2025-01-01T11:55:00.000Z",
            "extra": "ignored",
        }
    )

    assert order.order_id == "1234"
    assert order.customer_name == "Ana"
    assert order.known_status is OrderStatus.PREPARING
    assert order.items[0].price is None
    assert order.preparing_at == datetime(2025, 1, 1, 11, 55, tzinfo=UTC)
    assert order.ready_at is None


def test_order_falls_back_to_mongo_id_and_keeps_unknown_status() -> None:
    order = Order.model_validate({"_id": "abc", "status": "CANCELLED", "items": None})

    assert order.order_id == "abc"
    assert order.status == "CANCELLED"
    assert order.known_status is None
    assert order.items == []
