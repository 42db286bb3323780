from __future__ import annotations

import pytest

from kitchenboard.core.metrics import METRICS
from kitchenboard.core.notices import clear_notices
from kitchenboard.settings import AppSettings, get_settings

_ENV_KEYS = (
    "API_BASE_URL",
    "ORDERS_PATH",
    "START_PREPARING_PATH",
    "MARK_READY_PATH",
    "REFRESH_INTERVAL_SEC",
    "HTTP_TIMEOUT_SEC",
)


@pytest.fixture(autouse=True)
def _isolated_runtime(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    METRICS.reset()
    clear_notices()
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(api_base_url="http://kitchen.test")
