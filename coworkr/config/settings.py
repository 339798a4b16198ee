from __future__ import annotations

import os
from zoneinfo import ZoneInfo

DEFAULT_APP_URL = "http://localhost:3000"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_TEAM_ID = "demo-team"
DEFAULT_CALLER_ID = "demo-user"
DEFAULT_LLM_PROVIDER = "gemini"
DEFAULT_LLM_TIMEOUT_SECONDS = 12.0
DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_HISTORY_LIMIT = 20
DEFAULT_STATE_TTL_HOURS = 24.0
DEFAULT_VOICE = "rachel"
DEFAULT_STORE_BACKEND = "rest"


def get_app_url() -> str:
    configured = os.getenv("COWORKR_APP_URL")
    url = (
        configured.strip()
        if isinstance(configured, str) and configured.strip()
        else DEFAULT_APP_URL
    )
    return url.rstrip("/")


def get_timezone() -> str:
    configured = os.getenv("COWORKR_TIMEZONE")
    tz_name = (
        configured.strip()
        if isinstance(configured, str) and configured.strip()
        else DEFAULT_TIMEZONE
    )
    try:
        ZoneInfo(tz_name)
    except Exception:
        return DEFAULT_TIMEZONE
    return tz_name


def get_team_id() -> str:
    configured = os.getenv("COWORKR_TEAM_ID")
    if isinstance(configured, str) and configured.strip():
        return configured.strip()
    return DEFAULT_TEAM_ID


def get_llm_provider() -> str:
    configured = os.getenv("COWORKR_LLM_PROVIDER")
    provider = (
        configured.strip().lower()
        if isinstance(configured, str) and configured.strip()
        else DEFAULT_LLM_PROVIDER
    )
    if provider not in {"gemini", "openai", "ollama"}:
        return DEFAULT_LLM_PROVIDER
    return provider


def get_llm_timeout_seconds() -> float:
    return _positive_float("COWORKR_LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS)


def get_store_timeout_seconds() -> float:
    return _positive_float("COWORKR_STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS)


def get_history_limit() -> int:
    configured = os.getenv("COWORKR_HISTORY_LIMIT")
    if configured is None:
        return DEFAULT_HISTORY_LIMIT
    try:
        value = int(configured)
    except (TypeError, ValueError):
        return DEFAULT_HISTORY_LIMIT
    return max(value, 2)


def get_state_ttl_seconds() -> float:
    return _positive_float("COWORKR_STATE_TTL_HOURS", DEFAULT_STATE_TTL_HOURS) * 3600.0


def get_voice() -> str:
    configured = os.getenv("COWORKR_VOICE")
    if isinstance(configured, str) and configured.strip():
        return configured.strip().lower()
    return DEFAULT_VOICE


def get_store_backend() -> str:
    configured = os.getenv("COWORKR_STORE_BACKEND")
    backend = (
        configured.strip().lower()
        if isinstance(configured, str) and configured.strip()
        else DEFAULT_STORE_BACKEND
    )
    if backend not in {"rest", "memory"}:
        return DEFAULT_STORE_BACKEND
    return backend


def get_log_level() -> str:
    configured = os.getenv("COWORKR_LOG_LEVEL")
    if isinstance(configured, str) and configured.strip():
        return configured.strip().upper()
    return "INFO"


def _positive_float(name: str, default: float) -> float:
    configured = os.getenv(name)
    if configured is None:
        return default
    try:
        value = float(configured)
    except (TypeError, ValueError):
        return default
    if value <= 0:
        return default
    return value
