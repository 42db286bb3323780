"""HTTP client for the order-management service used by the kitchen board."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from kitchenboard.core.metrics import KPIStore, METRICS
from kitchenboard.models import Order
from kitchenboard.settings import AppSettings

log = logging.getLogger("kitchenboard.orders_api")

_LIST_KEYS = ("orders", "data", "items")


class ErrorKind(str, Enum):
    """Coarse classification of a failed call to the order service."""

    NOT_FOUND = "not_found"
    UNREACHABLE = "unreachable"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Operator-facing guidance for an error kind."""

    severity: str
    hint: str


ERROR_INFO: dict[ErrorKind, ErrorInfo] = {
    ErrorKind.NOT_FOUND: ErrorInfo(
        severity="ERROR",
        hint=(
            "Endpoint not found. Check that the API gateway is running at {base_url} "
            "and that {orders_path} is available."
        ),
    ),
    ErrorKind.UNREACHABLE: ErrorInfo(
        severity="ERROR",
        hint="Could not connect to the server. Check that the API gateway is running at {base_url}.",
    ),
    ErrorKind.SERVER_ERROR: ErrorInfo(severity="ERROR", hint="Server error (HTTP {status_code}): {detail}"),
    ErrorKind.UNKNOWN: ErrorInfo(severity="WARN", hint="{detail}"),
}


class OrdersApiError(Exception):
    """Raised for transport failures and non-success responses."""

    def __init__(
        self,
        kind: ErrorKind,
        detail: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.status_code = status_code
        self.url = url


class OrderGateway(Protocol):
    """Surface the engine and dispatcher rely on."""

    async def fetch_orders(self, status: str | None = None) -> list[Order]:
        ...

    async def start_preparing(self, order_id: str) -> Order | None:
        ...

    async def mark_ready(self, order_id: str) -> Order | None:
        ...


def classify_status(status_code: int) -> ErrorKind:
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    return ErrorKind.SERVER_ERROR


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception raised while talking to the service to an ``ErrorKind``."""

    if isinstance(exc, OrdersApiError):
        return exc.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)):
        return ErrorKind.UNREACHABLE
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorKind.UNREACHABLE
    return ErrorKind.UNKNOWN


def describe_error(
    exc: BaseException,
    settings: AppSettings,
    *,
    fallback: str = "Failed to load orders",
) -> str:
    """Human-readable message for ``exc`` naming where the service is expected."""

    kind = classify_error(exc)
    status_code = getattr(exc, "status_code", None)
    detail = getattr(exc, "detail", None) or str(exc) or fallback
    return ERROR_INFO[kind].hint.format(
        base_url=settings.api_base_url,
        orders_path=settings.orders_path,
        status_code=status_code if status_code is not None else "?",
        detail=detail,
    )


def _response_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    return text[:200] if text else (response.reason_phrase or "request failed")


def _unwrap_list(payload: Any) -> list[Any]:
    if not payload:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
            if key in payload and not value:
                return []
    raise OrdersApiError(ErrorKind.UNKNOWN, "unexpected orders payload")


class OrdersApiClient:
    """Async wrapper around the order-management HTTP API."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        client: httpx.AsyncClient | None = None,
        metrics: KPIStore | None = None,
        time_provider: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout_sec)
        self._metrics = metrics or METRICS
        self._time = time_provider

    async def __aenter__(self) -> "OrdersApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._settings.api_base_url.rstrip("/") + path
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise OrdersApiError(ErrorKind.UNREACHABLE, f"request timed out: {exc}", url=url) from exc
        except httpx.RequestError as exc:
            raise OrdersApiError(ErrorKind.UNREACHABLE, f"connection failed: {exc}", url=url) from exc

        if not response.is_success:
            raise OrdersApiError(
                classify_status(response.status_code),
                _response_detail(response),
                status_code=response.status_code,
                url=url,
            )
        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise OrdersApiError(
                ErrorKind.UNKNOWN,
                "response was not valid JSON",
                status_code=response.status_code,
                url=url,
            ) from exc

    async def fetch_orders(self, status: str | None = None) -> list[Order]:
        """List orders, optionally restricted to one status."""

        params = {"status": status} if status else None
        started = self._time()
        payload = await self._request("GET", self._settings.orders_path, params=params)
        self._metrics.record_fetch_latency((self._time() - started) * 1000.0)

        orders: list[Order] = []
        for raw in _unwrap_list(payload):
            try:
                orders.append(Order.model_validate(raw))
            except ValidationError as exc:
                log.warning("Skipping malformed order entry: %s", exc.errors()[:1])
        log.debug("Fetched %d orders (status=%s)", len(orders), status or "all")
        return orders

    async def _transition(self, template: str, order_id: str) -> Order | None:
        path = template.format(order_id=quote(order_id, safe=""))
        payload = await self._request("POST", path)
        if isinstance(payload, dict):
            body = payload.get("order") if isinstance(payload.get("order"), dict) else payload
            try:
                return Order.model_validate(body)
            except ValidationError:
                return None
        return None

    async def start_preparing(self, order_id: str) -> Order | None:
        """Move a RECEIVED order to PREPARING."""

        return await self._transition(self._settings.start_preparing_path, order_id)

    async def mark_ready(self, order_id: str) -> Order | None:
        """Move a PREPARING order to READY."""

        return await self._transition(self._settings.mark_ready_path, order_id)
