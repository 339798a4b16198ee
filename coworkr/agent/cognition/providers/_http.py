from __future__ import annotations

import os
from typing import Any

import requests


def chat_messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return messages


def require_api_key(env_name: str) -> str:
    api_key = os.getenv(env_name)
    if not api_key:
        raise ValueError(f"Missing API key in {env_name}.")
    return api_key


def post_for_object(url: str, *, timeout: float, **kwargs: Any) -> dict[str, Any]:
    response = requests.post(url, timeout=timeout, **kwargs)
    response.raise_for_status()
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"Unexpected completion body from {url}.")
    return body
