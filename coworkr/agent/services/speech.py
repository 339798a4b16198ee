from __future__ import annotations

import os

import requests

from coworkr.agent.services.errors import SpeechUnavailable
from coworkr.config.settings import get_voice

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
TTS_MODEL_ID = "eleven_turbo_v2_5"
STT_MODEL_ID = "scribe_v1"

VOICES = {
    "rachel": "21m00Tcm4TlvDq8ikWAM",
    "domi": "AZnzlk1XvdvUeBnXmlld",
    "bella": "EXAVITQu4vr4xnSDxMaL",
    "antoni": "ErXwobaYiN019PkySvjV",
    "josh": "TxGEqnHWrfWFTfGW9XjX",
    "sarah": "EXAVITQu4vr4xnSDxMaL",
}

_VOICE_SETTINGS = {
    "stability": 0.65,
    "similarity_boost": 0.75,
    "style": 0.3,
    "use_speaker_boost": True,
}


def resolve_voice_id(voice: str | None) -> str:
    """Map a named voice to its id; unknown names are passed through as ids."""
    name = str(voice or "").strip() or get_voice()
    return VOICES.get(name.lower(), name)


class ElevenLabsSpeech:
    def __init__(
        self,
        *,
        base_url: str = ELEVENLABS_BASE_URL,
        api_key_env: str = "ELEVENLABS_API_KEY",
        timeout: float = 30.0,
        language_code: str = "en",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key_env = api_key_env
        self.timeout = timeout
        self.language_code = language_code

    def synthesize(self, text: str, voice_id: str | None = None) -> bytes:
        api_key = self._api_key()
        voice = resolve_voice_id(voice_id)
        try:
            response = requests.post(
                f"{self.base_url}/text-to-speech/{voice}/stream",
                headers={"xi-api-key": api_key, "Accept": "audio/mpeg"},
                json={
                    "text": text,
                    "model_id": TTS_MODEL_ID,
                    "voice_settings": _VOICE_SETTINGS,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SpeechUnavailable(f"text-to-speech failed: {exc}") from exc
        return response.content

    def transcribe(self, audio: bytes, *, filename: str = "audio.webm", content_type: str = "audio/webm") -> str:
        api_key = self._api_key()
        if not audio:
            raise SpeechUnavailable("no audio provided")
        try:
            response = requests.post(
                f"{self.base_url}/speech-to-text",
                headers={"xi-api-key": api_key},
                files={"file": (filename, audio, content_type)},
                data={"model_id": STT_MODEL_ID, "language_code": self.language_code},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SpeechUnavailable(f"speech-to-text failed: {exc}") from exc
        text = body.get("text") if isinstance(body, dict) else None
        return str(text or "").strip()

    def _api_key(self) -> str:
        api_key = os.getenv(self.api_key_env)
        if not api_key:
            raise SpeechUnavailable(f"Missing API key in {self.api_key_env}.")
        return api_key
