"""Probe the order service once and print a JSON verdict."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from kitchenboard.adapters.orders_api import OrdersApiClient, OrdersApiError, describe_error
from kitchenboard.core.metrics import snapshot_kpis
from kitchenboard.settings import AppSettings


async def _probe(settings: AppSettings) -> dict[str, object]:
    async with OrdersApiClient(settings=settings) as client:
        try:
            orders = await client.fetch_orders()
        except OrdersApiError as exc:
            return {"reachable": False, "kind": exc.kind.value, "error": describe_error(exc, settings)}
    return {
        "reachable": True,
        "orders": len(orders),
        "latency_ms": snapshot_kpis()["fetch_latency_ms_median"],
    }


def main() -> int:
    load_dotenv()
    settings = AppSettings()
    payload = {"api": settings.api_base_url + settings.orders_path}
    payload.update(asyncio.run(_probe(settings)))
    print(json.dumps(payload, separators=(",", ":")))
    return 0 if payload["reachable"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
