from __future__ import annotations

import json

import pytest

from kitchenboard.core.logging import log_event, tail_events
from kitchenboard.core.metrics import snapshot_kpis


def test_log_event_writes_text_and_jsonl(tmp_path) -> None:
    log_event("sync", "refresh.fail", "gateway down", level="ERROR", kind="unreachable")

    text = (tmp_path / "runtime/logs/kitchenboard.log").read_text(encoding="utf-8").strip().splitlines()
    line = text[-1]
    assert "level=ERROR" in line
    assert "svc=sync" in line
    assert "topic=refresh.fail" in line
    assert "kind=unreachable" in line
    assert 'msg="gateway down"' in line

    entries = (tmp_path / "runtime/logs/kitchenboard.jsonl").read_text(encoding="utf-8").splitlines()
    event = json.loads(entries[-1])
    assert event["extra"] == {"kind": "unreachable"}
    assert snapshot_kpis()["errors_1m"] == 1


def test_log_event_normalises_level() -> None:
    assert log_event("cli", "x", "hello", level="warning")["level"] == "WARN"
    assert log_event("cli", "x", "hello", level="chatty")["level"] == "INFO"


def test_tail_events_filters_and_limits() -> None:
    for idx in range(5):
        log_event("sync", "refresh.fail", f"failure {idx}", level="ERROR")
    log_event("sync", "refresh.ok", "refreshed", level="DEBUG")

    lines = tail_events("error", 2)
    assert len(lines) == 2
    assert 'msg="failure 4"' in lines[-1]
    assert len(tail_events("debug", 50)) == 6


def test_tail_events_without_log(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        tail_events(path=tmp_path / "missing.log")
