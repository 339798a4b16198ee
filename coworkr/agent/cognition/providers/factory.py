from __future__ import annotations

import os
from typing import Any, Callable

from coworkr.agent.cognition.providers.gemini import GeminiClient
from coworkr.agent.cognition.providers.ollama import OllamaClient
from coworkr.agent.cognition.providers.openai import OpenAIClient
from coworkr.config.settings import get_llm_provider


def build_llm_client() -> Any:
    builders: dict[str, Callable[[], Any]] = {
        "gemini": _gemini,
        "openai": _openai,
        "ollama": _ollama,
    }
    return builders[get_llm_provider()]()


def _gemini() -> GeminiClient:
    return GeminiClient(
        base_url=_env("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
        model=_env("GEMINI_MODEL", "gemini-1.5-flash"),
        api_key_env=_env("GEMINI_API_KEY_ENV", "GOOGLE_AI_API_KEY"),
        timeout=_seconds("GEMINI_TIMEOUT_SECONDS", 30.0),
    )


def _openai() -> OpenAIClient:
    return OpenAIClient(
        base_url=_env("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        model=_env("OPENAI_MODEL", "gpt-4o-mini"),
        api_key_env=_env("OPENAI_API_KEY_ENV", "OPENAI_API_KEY"),
        timeout=_seconds("OPENAI_TIMEOUT_SECONDS", 60.0),
    )


def _ollama() -> OllamaClient:
    return OllamaClient(
        base_url=_env("OLLAMA_BASE_URL", "http://localhost:11434"),
        model=_env("LOCAL_LLM_MODEL", "mistral:7b-instruct"),
        timeout=_seconds("LOCAL_LLM_TIMEOUT_SECONDS", 240.0),
    )


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip() if isinstance(value, str) and value.strip() else default


def _seconds(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, default))
    except ValueError:
        return default
    return value if value > 0 else default
