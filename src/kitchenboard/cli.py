"""Kitchenboard command-line interface."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, NoReturn, Optional

import typer
from dotenv import load_dotenv

from kitchenboard.adapters.orders_api import OrderGateway, OrdersApiClient, OrdersApiError, describe_error
from kitchenboard.core.actions import MARK_READY, START_PREPARING, ActionDispatcher, TransitionNotAllowed
from kitchenboard.core.logging import ensure_runtime_dirs, log_event, tail_events
from kitchenboard.core.sync import OrderSyncEngine, SyncState
from kitchenboard.core.timing import status_text
from kitchenboard.models import KNOWN_STATUSES
from kitchenboard.settings import AppSettings, get_settings
from kitchenboard.utils.logging_setup import setup_logging
from kitchenboard.views import board_payload, render_board

from . import __version__

app = typer.Typer(name="kitchenboard", help="Kitchen order dashboard CLI.")
orders_app = typer.Typer(help="List and advance kitchen orders.")
log_cli_app = typer.Typer(help="Log inspection utilities.")

app.add_typer(orders_app, name="orders")
app.add_typer(log_cli_app, name="log")

log = logging.getLogger("kitchenboard.cli")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Root logging level."),
) -> None:
    """Load ``.env`` and configure logging before any command runs."""

    load_dotenv()
    setup_logging(log_level)


def _make_gateway(settings: AppSettings) -> OrderGateway:
    return OrdersApiClient(settings=settings)


async def _close(gateway: Any) -> None:
    closer = getattr(gateway, "aclose", None)
    if closer is not None:
        await closer()


def _parse_status(value: str | None) -> str | None:
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    status = value.strip().upper()
    if status not in KNOWN_STATUSES:
        allowed = ",".join(KNOWN_STATUSES)
        raise typer.BadParameter(f"unknown status: {value}; allowed={allowed},all")
    return status


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(1)


@app.command()
def version() -> None:
    """Print the Kitchenboard version."""

    typer.echo(__version__)


async def _fetch_state(settings: AppSettings, status: str | None) -> SyncState:
    gateway = _make_gateway(settings)
    try:
        engine = OrderSyncEngine(gateway, settings=settings, initial_filter=status)
        return await engine.refresh()
    finally:
        await _close(gateway)


@orders_app.command("list")
def orders_list(
    status: str = typer.Option("all", "--status", "-s", help="RECEIVED|PREPARING|READY|all"),
    as_json: bool = typer.Option(False, "--json", help="Print the board payload as JSON."),
) -> None:
    """Fetch the current orders once and print them grouped by status."""

    settings = get_settings()
    state = asyncio.run(_fetch_state(settings, _parse_status(status)))
    payload = board_payload(state)
    log_event("cli", "orders.list", "orders listed", filter=state.filter or "all", count=len(state.orders))
    if state.error is not None:
        _fail(state.error.message)
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(render_board(payload))


async def _transition(settings: AppSettings, action: str, order_id: str) -> SyncState:
    gateway = _make_gateway(settings)
    try:
        engine = OrderSyncEngine(gateway, settings=settings)
        dispatcher = ActionDispatcher(gateway, engine, settings=settings)
        call = dispatcher.start_preparing if action == START_PREPARING else dispatcher.mark_ready
        await call(order_id)
        return engine.state
    finally:
        await _close(gateway)


def _run_transition(action: str, order_id: str) -> None:
    settings = get_settings()
    try:
        state = asyncio.run(_transition(settings, action, order_id))
    except OrdersApiError as exc:
        _fail(describe_error(exc, settings))
    except TransitionNotAllowed as exc:
        _fail(str(exc))

    order = next((item for item in state.orders if item.order_id == order_id), None)
    shown = status_text(order.status) if order is not None else "updated"
    typer.echo(f"{order_id}: {shown}")


@orders_app.command("start")
def orders_start(order_id: str = typer.Argument(..., help="Order identifier.")) -> None:
    """Start preparing a RECEIVED order."""

    _run_transition(START_PREPARING, order_id)


@orders_app.command("ready")
def orders_ready(order_id: str = typer.Argument(..., help="Order identifier.")) -> None:
    """Mark a PREPARING order as ready."""

    _run_transition(MARK_READY, order_id)


async def _watch(settings: AppSettings, status: str | None, interval: float, cycles: int) -> int:
    gateway = _make_gateway(settings)
    done = asyncio.Event()
    rendered = 0

    def on_change(state: SyncState) -> None:
        nonlocal rendered
        if state.loading:
            return
        typer.echo(render_board(board_payload(state)))
        typer.echo("-" * 40)
        rendered += 1
        if cycles and rendered >= cycles:
            done.set()

    engine = OrderSyncEngine(gateway, settings=settings, interval_sec=interval, initial_filter=status)
    engine.add_listener(on_change)
    try:
        async with engine:
            await done.wait()
    finally:
        await _close(gateway)
    return rendered


@app.command()
def watch(
    status: str = typer.Option("all", "--status", "-s", help="RECEIVED|PREPARING|READY|all"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", min=0.1, help="Seconds between refreshes."),
    cycles: int = typer.Option(0, "--cycles", "-c", min=0, help="Stop after N refreshes (0 = forever)."),
) -> None:
    """Keep the board on screen, refreshing on a fixed period."""

    settings = get_settings()
    period = interval if interval is not None else settings.refresh_interval_sec
    log_event("cli", "watch", "watch started", interval=period, cycles=cycles)
    try:
        asyncio.run(_watch(settings, _parse_status(status), period, cycles))
    except KeyboardInterrupt:
        typer.echo("stopped")


@app.command()
def dashboard(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port."),
) -> None:
    """Serve the web dashboard with uvicorn."""

    import uvicorn

    settings = get_settings()
    config = uvicorn.Config(
        "kitchenboard.dashboard.server:create_app",
        host=host or settings.dashboard_host,
        port=port or settings.dashboard_port,
        log_level="info",
        factory=True,
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except KeyboardInterrupt:
        log.info("Dashboard stopped cleanly")
    except Exception:
        log.exception("Dashboard server crashed")
        raise typer.Exit(1)


@log_cli_app.command("tail")
def log_tail(
    level: str = typer.Option("INFO", "--level", "-l", help="Minimum level to include."),
    lines: int = typer.Option(20, "--lines", "-n", help="Number of lines to display."),
) -> None:
    """Show the last structured log lines at or above a level."""

    ensure_runtime_dirs()
    try:
        entries = tail_events(level, lines)
    except FileNotFoundError:
        _fail("log file not found")
    for entry in entries:
        typer.echo(entry)


if __name__ == "__main__":
    app()
