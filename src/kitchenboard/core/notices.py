"""Operator notices raised by failed order actions."""

from __future__ import annotations

import threading
from collections import deque
from datetime import UTC, datetime
from typing import Any

_NOTICES: deque[dict[str, Any]] = deque(maxlen=50)
_LOCK = threading.Lock()


def add_notice(
    action: str,
    order_id: str,
    message: str,
    *,
    kind: str | None = None,
    level: str = "ERROR",
) -> dict[str, Any]:
    """Push a notice to the front of the ring buffer."""

    record = {
        "ts": datetime.now(tz=UTC).isoformat(timespec="seconds"),
        "level": level,
        "action": action,
        "order_id": order_id,
        "kind": kind,
        "message": message,
    }
    with _LOCK:
        _NOTICES.appendleft(record)
    return record


def list_notices(limit: int | None = None) -> list[dict[str, Any]]:
    """Return stored notices, newest first."""

    with _LOCK:
        items = list(_NOTICES)
    return items if limit is None else items[: max(limit, 0)]


def set_capacity(size: int) -> None:
    """Resize the buffer, keeping the newest entries."""

    global _NOTICES
    capacity = max(1, size)
    with _LOCK:
        _NOTICES = deque(list(_NOTICES)[:capacity], maxlen=capacity)


def clear_notices() -> None:
    """Reset stored notices (primarily for tests)."""

    with _LOCK:
        _NOTICES.clear()
