"""Structured event log for kitchen board services."""

from __future__ import annotations

import json
import os
from collections import deque
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any

from .metrics import METRICS

RUNTIME_ROOT = Path("runtime")
LOG_DIR = RUNTIME_ROOT / "logs"

TEXT_LOG = LOG_DIR / "kitchenboard.log"
JSON_LOG = LOG_DIR / "kitchenboard.jsonl"

LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 3
_LOG_LOCK = Lock()

_LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40, "CRITICAL": 50}


def ensure_runtime_dirs() -> None:
    """Ensure runtime directories exist."""

    for path in (RUNTIME_ROOT, LOG_DIR):
        path.mkdir(parents=True, exist_ok=True)


def _rotate(path: Path) -> None:
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return
    if size < LOG_MAX_BYTES:
        return

    oldest = path.with_name(f"{path.name}.{LOG_BACKUP_COUNT}")
    oldest.unlink(missing_ok=True)
    for idx in range(LOG_BACKUP_COUNT - 1, 0, -1):
        src = path.with_name(f"{path.name}.{idx}")
        if src.exists():
            src.rename(path.with_name(f"{path.name}.{idx + 1}"))
    path.rename(path.with_name(f"{path.name}.1"))


def normalise_level(level: str) -> str:
    upper = level.upper()
    if upper == "WARNING":
        return "WARN"
    return upper if upper in _LEVEL_ORDER else "INFO"


def log_event(
    svc: str,
    topic: str,
    message: str,
    *,
    level: str = "INFO",
    **fields: Any,
) -> dict[str, Any]:
    """Append one event to the plaintext and JSONL logs and return it."""

    ensure_runtime_dirs()
    ts = datetime.now().isoformat(timespec="seconds")
    level_norm = normalise_level(level)

    event: dict[str, Any] = {
        "ts": ts,
        "level": level_norm,
        "svc": svc,
        "topic": topic,
        "msg": message,
        "pid": os.getpid(),
    }
    if fields:
        event["extra"] = fields

    parts = [f"[{ts}]", f"level={level_norm}", f"svc={svc}", f"topic={topic}"]
    parts.extend(f"{key}={value}" for key, value in fields.items())
    parts.append(f'msg="{message}"')

    line = " ".join(parts) + "\n"
    json_line = json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str) + "\n"

    with _LOG_LOCK:
        _rotate(TEXT_LOG)
        _rotate(JSON_LOG)
        with TEXT_LOG.open("a", encoding="utf-8") as text_handle:
            text_handle.write(line)
        with JSON_LOG.open("a", encoding="utf-8") as json_handle:
            json_handle.write(json_line)

    if _LEVEL_ORDER[level_norm] >= _LEVEL_ORDER["ERROR"]:
        METRICS.record_error()
    return event


def _line_level(line: str) -> str:
    for part in line.split():
        if part.startswith("level="):
            return normalise_level(part.split("=", 1)[1])
    return "INFO"


def tail_events(min_level: str = "INFO", limit: int = 20, *, path: Path | None = None) -> list[str]:
    """Last ``limit`` plaintext log lines at or above ``min_level``.

    Raises ``FileNotFoundError`` when nothing has been logged yet.
    """

    target = path or TEXT_LOG
    threshold = _LEVEL_ORDER[normalise_level(min_level)]
    with target.open("r", encoding="utf-8") as handle:
        matched = deque(
            (line.rstrip("\n") for line in handle if _LEVEL_ORDER[_line_level(line)] >= threshold),
            maxlen=max(limit, 0),
        )
    return list(matched)
