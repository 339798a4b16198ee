from __future__ import annotations

from coworkr.agent.cognition.providers._http import post_for_object, require_api_key


class GeminiClient:
    """Google Generative Language `generateContent` client.

    The system instruction is sent as the leading part of the single user
    turn, followed by the prompt itself.
    """

    def __init__(
        self,
        base_url="https://generativelanguage.googleapis.com/v1beta",
        model="gemini-1.5-flash",
        api_key_env="GOOGLE_AI_API_KEY",
        timeout=30,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key_env = api_key_env
        self.timeout = timeout
        self.generation_config = {
            "temperature": 0.7,
            "maxOutputTokens": 2048,
            "topP": 0.8,
            "topK": 40,
        }

    def complete(self, system_prompt, user_prompt):
        api_key = require_api_key(self.api_key_env)
        text = f"{system_prompt}\n\n{user_prompt}" if system_prompt else user_prompt
        body = post_for_object(
            f"{self.base_url}/models/{self.model}:generateContent",
            timeout=self.timeout,
            params={"key": api_key},
            json={
                "contents": [{"role": "user", "parts": [{"text": text}]}],
                "generationConfig": self.generation_config,
            },
        )
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise ValueError("Gemini returned no candidates.")
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise ValueError("Gemini returned an empty candidate.")
        return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
