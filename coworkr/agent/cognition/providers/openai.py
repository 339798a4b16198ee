from __future__ import annotations

from coworkr.agent.cognition.providers._http import chat_messages, post_for_object, require_api_key


class OpenAIClient:
    def __init__(
        self,
        base_url="https://api.openai.com/v1",
        model="gpt-4o-mini",
        api_key_env="OPENAI_API_KEY",
        timeout=60,
        temperature=0.7,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key_env = api_key_env
        self.timeout = timeout
        self.temperature = temperature

    def complete(self, system_prompt, user_prompt):
        api_key = require_api_key(self.api_key_env)
        body = post_for_object(
            f"{self.base_url}/chat/completions",
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": self.model,
                "messages": chat_messages(system_prompt, user_prompt),
                "temperature": self.temperature,
            },
        )
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ValueError("OpenAI returned no choices.")
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
