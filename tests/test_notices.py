from __future__ import annotations

from kitchenboard.core.notices import add_notice, list_notices, set_capacity


def test_notices_ring_buffer_keeps_newest_first() -> None:
    for idx in range(60):
        add_notice("mark_ready", f"order-{idx}", "Server error", kind="server_error")

    notices = list_notices()
    assert len(notices) == 50
    assert notices[0]["order_id"] == "order-59"
    assert notices[-1]["order_id"] == "order-10"
    assert list_notices(limit=2)[1]["order_id"] == "order-58"


def test_set_capacity_keeps_most_recent() -> None:
    for idx in range(5):
        add_notice("start_preparing", f"o{idx}", "boom")

    set_capacity(2)
    try:
        assert [n["order_id"] for n in list_notices()] == ["o4", "o3"]
    finally:
        set_capacity(50)
