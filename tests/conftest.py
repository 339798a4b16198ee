from __future__ import annotations

import pytest

_ENV_VARS = (
    "COWORKR_APP_URL",
    "COWORKR_TIMEZONE",
    "COWORKR_TEAM_ID",
    "COWORKR_LLM_PROVIDER",
    "COWORKR_LLM_TIMEOUT_SECONDS",
    "COWORKR_STORE_TIMEOUT_SECONDS",
    "COWORKR_HISTORY_LIMIT",
    "COWORKR_STATE_TTL_HOURS",
    "COWORKR_VOICE",
    "COWORKR_STORE_BACKEND",
    "COWORKR_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_coworkr_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # A developer .env must not leak into assertions about defaults.
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
