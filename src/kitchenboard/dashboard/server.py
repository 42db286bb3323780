"""FastAPI dashboard exposing the kitchen board, order actions and a WebSocket feed."""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.requests import ClientDisconnect

from kitchenboard import __version__
from kitchenboard.adapters.orders_api import OrderGateway, OrdersApiClient, OrdersApiError, describe_error
from kitchenboard.core.actions import ActionDispatcher, TransitionNotAllowed
from kitchenboard.core.logging import log_event
from kitchenboard.core.metrics import snapshot_kpis
from kitchenboard.core.notices import list_notices, set_capacity
from kitchenboard.core.sync import OrderSyncEngine, normalise_filter
from kitchenboard.models import KNOWN_STATUSES
from kitchenboard.settings import AppSettings, get_settings
from kitchenboard.views import board_payload

log = logging.getLogger("kitchenboard.dashboard")

WS_PUSH_INTERVAL = 2.0
NOTICE_LIMIT = 10
BUILD_INFO = {
    "version": __version__,
    "py": sys.version.split()[0],
    "platform": platform.platform(),
}

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>Kitchen Dashboard</title>
  </head>
  <body>
    <h1>Kitchen Dashboard</h1>
    <nav>
      <button data-filter="">All</button>
      <button data-filter="RECEIVED">Received</button>
      <button data-filter="PREPARING">Preparing</button>
      <button data-filter="READY">Ready</button>
      <button id="refresh">Refresh</button>
    </nav>
    <p id="error"></p>
    <div id="board">Loading orders...</div>
    <script>
      const board = document.getElementById("board");
      const errorBox = document.getElementById("error");
      const labels = {start_preparing: "Start Cooking", mark_ready: "Mark as Ready"};
      const paths = {start_preparing: "start-preparing", mark_ready: "ready"};

      function render(payload) {
        errorBox.textContent = payload.error ? payload.error.message : "";
        if (!payload.orders.length) {
          board.textContent = payload.loading ? "Loading orders..." : "No orders found";
          return;
        }
        board.innerHTML = "";
        for (const order of payload.orders) {
          const card = document.createElement("section");
          const lines = order.items.map(i => i.label + (i.amount ? " $" + i.amount : ""));
          if (order.total) lines.push("Total: $" + order.total);
          card.innerText = `Order #${order.short_id} ${order.customer} (${order.age})\\n`
            + lines.join("\\n") + `\\n${order.status_text}`;
          if (order.action) {
            const btn = document.createElement("button");
            btn.disabled = order.processing;
            btn.textContent = order.processing ? "Processing..." : labels[order.action];
            btn.onclick = () => act(order.order_id, order.action);
            card.appendChild(btn);
          }
          board.appendChild(card);
        }
      }

      async function post(url, body) {
        const res = await fetch(url, {method: "POST", headers: {"Content-Type": "application/json"},
                                      body: JSON.stringify(body || {})});
        const payload = await res.json();
        if (!res.ok) alert(payload.message || payload.detail || "Request failed");
        return payload;
      }

      async function act(orderId, action) {
        await post(`/api/orders/${encodeURIComponent(orderId)}/${paths[action]}`);
        load();
      }

      async function load() {
        const res = await fetch("/api/board");
        render(await res.json());
      }

      document.querySelectorAll("[data-filter]").forEach(btn => {
        btn.onclick = async () => render(await post("/api/filter", {status: btn.dataset.filter}));
      });
      document.getElementById("refresh").onclick = async () => render(await post("/api/refresh"));

      const ws = new WebSocket(`ws://${location.host}/ws`);
      ws.onmessage = (event) => render(JSON.parse(event.data).payload);
      ws.onclose = () => setInterval(load, 5000);
      load();
    </script>
  </body>
</html>
"""


def _engine(request: Request | WebSocket) -> OrderSyncEngine:
    return request.app.state.engine


def _dispatcher(request: Request | WebSocket) -> ActionDispatcher:
    return request.app.state.dispatcher


def _board(request: Request | WebSocket) -> dict[str, Any]:
    return board_payload(_engine(request).state, _dispatcher(request).in_flight)


def _error_response(exc: OrdersApiError, settings: AppSettings, action: str) -> JSONResponse:
    message = describe_error(exc, settings, fallback=f"{action} failed")
    return JSONResponse(
        {"ok": False, "error": exc.kind.value, "message": message, "status_code": exc.status_code},
        status_code=502,
    )


def create_app(settings: AppSettings | None = None, gateway: OrderGateway | None = None) -> FastAPI:
    """Build the dashboard app; the sync engine lives as long as the app does."""

    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        client: OrdersApiClient | None = None
        backend = gateway
        if backend is None:
            client = OrdersApiClient(settings=app_settings)
            backend = client
        set_capacity(app_settings.notice_limit)
        engine = OrderSyncEngine(backend, settings=app_settings)
        app.state.engine = engine
        app.state.dispatcher = ActionDispatcher(backend, engine, settings=app_settings)
        await engine.start()
        log_event("dashboard", "startup", "dashboard started", api=app_settings.api_base_url)
        try:
            yield
        finally:
            await engine.stop()
            if client is not None:
                await client.aclose()
            log_event("dashboard", "shutdown", "dashboard stopped")

    app = FastAPI(title=app_settings.app_brand, version=__version__, lifespan=lifespan)
    app.state.settings = app_settings

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(content=INDEX_HTML)

    @app.get("/healthz")
    async def healthz(request: Request) -> dict[str, Any]:
        engine = _engine(request)
        error = engine.error
        return {
            "ok": True,
            "sync": {
                "active": engine.active,
                "interval_sec": engine.interval,
                "error": None if error is None else error.kind.value,
                "last_updated": engine.state.last_updated.isoformat() if engine.state.last_updated else None,
            },
            "ts": datetime.now(UTC).isoformat(),
        }

    @app.get("/metrics")
    async def metrics() -> dict[str, Any]:
        return {
            "ok": True,
            "ts": datetime.now(UTC).isoformat(timespec="seconds"),
            "kpi": snapshot_kpis(),
            "build": BUILD_INFO,
        }

    @app.get("/api/board")
    async def api_board(request: Request) -> dict[str, Any]:
        return _board(request)

    @app.post("/api/refresh")
    async def api_refresh(request: Request) -> dict[str, Any]:
        await _engine(request).refresh()
        return _board(request)

    @app.post("/api/filter")
    async def api_filter(request: Request) -> Any:
        try:
            payload = await request.json()
        except ClientDisconnect:
            log_event("dashboard", "api.filter", "client disconnected", level="WARN")
            return JSONResponse({"ok": False, "error": "client_disconnected"}, status_code=499)
        except ValueError:
            payload = {}
        status = payload.get("status") if isinstance(payload, dict) else None
        if status is not None and not isinstance(status, str):
            raise HTTPException(status_code=400, detail="status must be a string")
        value = normalise_filter(status)
        if value == "ALL":
            value = None
        if value is not None and value not in KNOWN_STATUSES:
            allowed = ",".join(KNOWN_STATUSES)
            raise HTTPException(status_code=400, detail=f"unknown status: {status}; allowed={allowed},all")
        await _engine(request).set_filter(value)
        return _board(request)

    async def _run_action(request: Request, order_id: str, action: str) -> JSONResponse:
        dispatcher = _dispatcher(request)
        call = dispatcher.start_preparing if action == "start_preparing" else dispatcher.mark_ready
        try:
            dispatched = await call(order_id)
        except TransitionNotAllowed as exc:
            return JSONResponse({"ok": False, "error": "invalid_transition", "message": str(exc)}, status_code=409)
        except OrdersApiError as exc:
            return _error_response(exc, app_settings, action)
        return JSONResponse(
            {"ok": True, "order_id": order_id, "action": action, "dispatched": dispatched},
            status_code=202,
        )

    @app.post("/api/orders/{order_id}/start-preparing")
    async def api_start_preparing(order_id: str, request: Request) -> JSONResponse:
        return await _run_action(request, order_id, "start_preparing")

    @app.post("/api/orders/{order_id}/ready")
    async def api_mark_ready(order_id: str, request: Request) -> JSONResponse:
        return await _run_action(request, order_id, "mark_ready")

    @app.get("/api/notices")
    async def api_notices(limit: int = NOTICE_LIMIT) -> dict[str, Any]:
        return {"ok": True, "notices": list_notices(limit)}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            while True:
                await websocket.send_json({"type": "board", "payload": _board(websocket)})
                await asyncio.sleep(WS_PUSH_INTERVAL)
        except WebSocketDisconnect:
            pass

    return app

