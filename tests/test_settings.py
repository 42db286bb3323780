"""Tests for the settings loader."""
from __future__ import annotations

from pathlib import Path
from shutil import copyfile

from kitchenboard.settings import AppSettings, get_settings


def test_env_example_loads_defaults(tmp_path, monkeypatch) -> None:
    project_root = Path(__file__).resolve().parent.parent
    copyfile(project_root / ".env.example", tmp_path / ".env")
    monkeypatch.chdir(tmp_path)

    settings = AppSettings()

    assert settings.api_base_url == "http://localhost:3000"
    assert settings.orders_path == "/kitchen/orders"
    assert settings.mark_ready_path.format(order_id="x") == "/kitchen/orders/x/ready"
    assert settings.refresh_interval_sec == 10.0


def test_environment_overrides_are_cached(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://gateway:8080")
    monkeypatch.setenv("REFRESH_INTERVAL_SEC", "2.5")

    first = get_settings()
    assert first.api_base_url == "http://gateway:8080"
    assert first.refresh_interval_sec == 2.5
    assert get_settings() is first
