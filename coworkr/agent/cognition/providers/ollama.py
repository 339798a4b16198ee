from __future__ import annotations

from coworkr.agent.cognition.providers._http import chat_messages, post_for_object


class OllamaClient:
    """Local model through Ollama's `/api/chat`, non-streaming."""

    def __init__(
        self,
        base_url="http://localhost:11434",
        model="mistral:7b-instruct",
        timeout=120,
        temperature=0.7,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature

    def complete(self, system_prompt, user_prompt):
        body = post_for_object(
            f"{self.base_url}/api/chat",
            timeout=self.timeout,
            json={
                "model": self.model,
                "messages": chat_messages(system_prompt, user_prompt),
                "stream": False,
                "options": {"temperature": self.temperature},
            },
        )
        message = body.get("message")
        if not isinstance(message, dict):
            raise ValueError("Ollama returned no message.")
        return str(message.get("content") or "")
