from __future__ import annotations

import pytest

from coworkr.agent.cognition.providers import GeminiClient, OllamaClient, OpenAIClient, build_llm_client
from coworkr.config import settings


def test_defaults_without_environment() -> None:
    assert settings.get_app_url() == "http://localhost:3000"
    assert settings.get_timezone() == "UTC"
    assert settings.get_team_id() == "demo-team"
    assert settings.get_llm_provider() == "gemini"
    assert settings.get_history_limit() == 20
    assert settings.get_state_ttl_seconds() == 24 * 3600
    assert settings.get_store_backend() == "rest"
    assert settings.get_voice() == "rachel"
    assert settings.get_log_level() == "INFO"


def test_configured_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COWORKR_APP_URL", " https://crm.example.com/ ")
    monkeypatch.setenv("COWORKR_TIMEZONE", "America/Mexico_City")
    monkeypatch.setenv("COWORKR_LLM_PROVIDER", "OpenAI")
    monkeypatch.setenv("COWORKR_STATE_TTL_HOURS", "2")
    monkeypatch.setenv("COWORKR_STORE_BACKEND", "memory")
    monkeypatch.setenv("COWORKR_VOICE", "Josh")

    assert settings.get_app_url() == "https://crm.example.com"
    assert settings.get_timezone() == "America/Mexico_City"
    assert settings.get_llm_provider() == "openai"
    assert settings.get_state_ttl_seconds() == 7200
    assert settings.get_store_backend() == "memory"
    assert settings.get_voice() == "josh"


@pytest.mark.parametrize(
    ("name", "value", "getter", "expected"),
    [
        ("COWORKR_TIMEZONE", "Mars/Olympus", settings.get_timezone, "UTC"),
        ("COWORKR_LLM_PROVIDER", "carrier-pigeon", settings.get_llm_provider, "gemini"),
        ("COWORKR_HISTORY_LIMIT", "lots", settings.get_history_limit, 20),
        ("COWORKR_HISTORY_LIMIT", "1", settings.get_history_limit, 2),
        ("COWORKR_LLM_TIMEOUT_SECONDS", "-3", settings.get_llm_timeout_seconds, 12.0),
        ("COWORKR_STORE_TIMEOUT_SECONDS", "soon", settings.get_store_timeout_seconds, 10.0),
        ("COWORKR_STORE_BACKEND", "postgres", settings.get_store_backend, "rest"),
    ],
)
def test_invalid_values_fall_back(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, getter: object, expected: object
) -> None:
    monkeypatch.setenv(name, value)
    assert getter() == expected


def test_provider_factory_follows_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    assert isinstance(build_llm_client(), GeminiClient)

    monkeypatch.setenv("COWORKR_LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    client = build_llm_client()
    assert isinstance(client, OpenAIClient)
    assert client.model == "gpt-test"

    monkeypatch.setenv("COWORKR_LLM_PROVIDER", "ollama")
    monkeypatch.setenv("LOCAL_LLM_TIMEOUT_SECONDS", "not-a-number")
    ollama = build_llm_client()
    assert isinstance(ollama, OllamaClient)
    assert ollama.timeout == 240.0


def test_provider_without_api_key_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError):
        OpenAIClient().complete("system", "user")
