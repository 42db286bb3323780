from __future__ import annotations

import asyncio

import pytest

from kitchenboard.adapters.orders_api import ErrorKind, OrdersApiError
from kitchenboard.core.actions import ActionDispatcher, TransitionNotAllowed
from kitchenboard.core.metrics import METRICS
from kitchenboard.core.notices import list_notices
from kitchenboard.core.sync import OrderSyncEngine

from tests.fakes.fake_orders import FakeOrderGateway, make_order


def _setup(settings, *orders):
    gateway = FakeOrderGateway(orders or [make_order("ord-0001", "RECEIVED"), make_order("ord-0002", "PREPARING")])
    engine = OrderSyncEngine(gateway, settings=settings)
    dispatcher = ActionDispatcher(gateway, engine, settings=settings)
    return gateway, engine, dispatcher


def test_start_preparing_refreshes_once(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)

    async def run() -> bool:
        await engine.refresh()
        return await dispatcher.start_preparing("ord-0001")

    assert asyncio.run(run()) is True
    assert gateway.mutation_calls == [("start_preparing", "ord-0001")]
    assert gateway.fetch_calls == [None, None]
    assert engine.find("ord-0001").status == "PREPARING"
    assert dispatcher.in_flight == frozenset()
    assert METRICS.get_counter("actions_total") == 1


def test_duplicate_request_while_in_flight_is_ignored(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)

    async def run() -> tuple[bool, bool, bool]:
        await engine.refresh()
        gateway.mutation_gate = asyncio.Event()
        first = asyncio.create_task(dispatcher.mark_ready("ord-0002"))
        await asyncio.sleep(0)
        processing = dispatcher.is_processing("ord-0002")
        second = await dispatcher.mark_ready("ord-0002")
        gateway.mutation_gate.set()
        return processing, second, await first

    processing, second, first = asyncio.run(run())

    assert processing is True
    assert second is False
    assert first is True
    assert gateway.mutation_calls == [("mark_ready", "ord-0002")]
    assert gateway.status_of("ord-0002") == "READY"
    assert METRICS.get_counter("actions_skipped_total") == 1


def test_actions_on_different_orders_run_concurrently(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)

    async def run() -> frozenset[str]:
        await engine.refresh()
        gateway.mutation_gate = asyncio.Event()
        tasks = [
            asyncio.create_task(dispatcher.start_preparing("ord-0001")),
            asyncio.create_task(dispatcher.mark_ready("ord-0002")),
        ]
        await asyncio.sleep(0)
        busy = dispatcher.in_flight
        gateway.mutation_gate.set()
        await asyncio.gather(*tasks)
        return busy

    busy = asyncio.run(run())

    assert busy == frozenset({"ord-0001", "ord-0002"})
    assert dispatcher.in_flight == frozenset()
    assert gateway.status_of("ord-0001") == "PREPARING"
    assert gateway.status_of("ord-0002") == "READY"


def test_failed_mark_ready_reports_and_allows_retry(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)
    gateway.mutation_errors["mark_ready"] = OrdersApiError(
        ErrorKind.SERVER_ERROR, "kitchen printer jammed", status_code=500
    )

    async def run() -> None:
        await engine.refresh()
        with pytest.raises(OrdersApiError) as excinfo:
            await dispatcher.mark_ready("ord-0002")
        assert excinfo.value.kind is ErrorKind.SERVER_ERROR
        assert dispatcher.in_flight == frozenset()
        assert engine.find("ord-0002").status == "PREPARING"

        gateway.mutation_errors.clear()
        assert await dispatcher.mark_ready("ord-0002") is True

    asyncio.run(run())

    assert gateway.status_of("ord-0002") == "READY"
    assert len(gateway.mutation_calls) == 2
    # the failed attempt does not trigger a refresh
    assert gateway.fetch_calls == [None, None]
    notices = list_notices()
    assert len(notices) == 1
    assert notices[0]["action"] == "mark_ready"
    assert notices[0]["order_id"] == "ord-0002"
    assert notices[0]["message"] == "Server error (HTTP 500): kitchen printer jammed"
    assert METRICS.get_counter("actions_failed_total") == 1


def test_unexpected_errors_are_wrapped(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)
    gateway.mutation_errors["start_preparing"] = RuntimeError()

    async def run() -> None:
        await engine.refresh()
        await dispatcher.start_preparing("ord-0001")

    with pytest.raises(OrdersApiError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.kind is ErrorKind.UNKNOWN
    assert str(excinfo.value) == "Failed to start preparing the order"
    assert dispatcher.in_flight == frozenset()
    assert list_notices()[0]["kind"] == "unknown"


def test_wrong_source_state_is_rejected(settings) -> None:
    gateway, engine, dispatcher = _setup(settings, make_order("ord-0003", "READY"))

    async def run() -> None:
        await engine.refresh()
        with pytest.raises(TransitionNotAllowed) as excinfo:
            await dispatcher.mark_ready("ord-0003")
        assert excinfo.value.status == "READY"
        with pytest.raises(TransitionNotAllowed):
            await dispatcher.start_preparing("ord-0003")

    asyncio.run(run())

    assert gateway.mutation_calls == []
    assert dispatcher.in_flight == frozenset()


def test_orders_not_on_the_board_go_to_the_service(settings) -> None:
    gateway, engine, dispatcher = _setup(settings)

    assert asyncio.run(dispatcher.start_preparing("ord-0001")) is True
    assert gateway.mutation_calls == [("start_preparing", "ord-0001")]
    assert engine.find("ord-0001").status == "PREPARING"
