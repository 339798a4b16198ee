from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from coworkr.agent.conversation import REPLY_DIRECT, ConversationEngine, TurnResult, build_engine
from coworkr.agent.observability.log_manager import get_log_manager
from coworkr.agent.services.errors import SpeechUnavailable
from coworkr.config.settings import DEFAULT_CALLER_ID

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "Sorry, I didn't catch that. Could you try again?"
NO_MESSAGE_TEXT = "I didn't receive a message. What would you like me to do?"
CALLER_COOKIE = "coworkr_user_id"
CALLER_HEADER = "x-coworkr-user-id"
_WEBHOOK_TEXT_KEYS = ("text", "message", "input", "query", "description", "transcript")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    with_voice: bool = Field(default=False, alias="withVoice")


def create_app(engine: ConversationEngine | None = None) -> FastAPI:
    load_dotenv()
    app = FastAPI(title="Coworkr Agent API", version="0.1.0")
    app.state.engine = engine

    def get_engine() -> ConversationEngine:
        if app.state.engine is None:
            app.state.engine = build_engine()
        return app.state.engine

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/agent/chat")
    async def agent_chat(request: Request, payload: ChatRequest | None = None) -> Any:
        payload = payload or ChatRequest()
        message = str(payload.message or "").strip()
        if not message:
            return JSONResponse(status_code=400, content={"error": "Message is required"})
        caller_id = resolve_caller(request, payload.user_id)
        try:
            result = await get_engine().handle_turn(message, caller_id, payload.with_voice)
        except Exception as exc:
            _report_failure("chat", caller_id, exc)
            return JSONResponse(status_code=500, content={"text": FALLBACK_TEXT, "audio": None})
        return _chat_body(result)

    @app.post("/agent/webhook")
    async def agent_webhook(request: Request, payload: dict[str, Any] | None = Body(default=None)) -> Any:
        payload = payload or {}
        message = _webhook_text(payload)
        if not message:
            return JSONResponse(status_code=400, content={"success": False, "response": NO_MESSAGE_TEXT})
        return await _webhook_turn(request, message, payload.get("userId"))

    @app.get("/agent/webhook")
    async def agent_webhook_query(request: Request, text: str | None = None, message: str | None = None) -> Any:
        utterance = str(text or message or "").strip()
        if not utterance:
            return {"success": False, "response": "Please provide a 'text' or 'message' query parameter."}
        return await _webhook_turn(request, utterance, None)

    async def _webhook_turn(request: Request, message: str, body_user: Any) -> Any:
        caller_id = resolve_caller(request, body_user)
        try:
            result = await get_engine().handle_turn(message, caller_id, False, reply_mode=REPLY_DIRECT)
        except Exception as exc:
            _report_failure("webhook", caller_id, exc)
            return JSONResponse(status_code=500, content={"success": False, "response": FALLBACK_TEXT})
        outcome = result.outcome
        return {
            "success": bool(outcome.success) if outcome is not None else False,
            "response": result.reply_text,
            "intent": result.intent_name,
            "data": outcome.data if outcome is not None else None,
        }

    @app.post("/agent/voice")
    async def agent_voice(request: Request) -> Any:
        audio = await request.body()
        caller_id = resolve_caller(request, None)
        engine = get_engine()
        if engine.speech is None:
            return JSONResponse(status_code=503, content={"text": FALLBACK_TEXT, "audio": None})
        content_type = request.headers.get("content-type") or "audio/webm"
        try:
            transcript = await asyncio.to_thread(
                engine.speech.transcribe, audio, content_type=content_type
            )
        except SpeechUnavailable as exc:
            logger.warning("transcription failed user_id=%s error=%s", caller_id, exc)
            return JSONResponse(status_code=502, content={"text": FALLBACK_TEXT, "audio": None})
        if not transcript:
            return JSONResponse(status_code=400, content={"text": FALLBACK_TEXT, "audio": None})
        try:
            result = await engine.handle_turn(transcript, caller_id, True)
        except Exception as exc:
            _report_failure("voice", caller_id, exc)
            return JSONResponse(status_code=500, content={"text": FALLBACK_TEXT, "audio": None})
        return {**_chat_body(result), "transcript": transcript}

    @app.get("/agent/conversation")
    def conversation_history(request: Request) -> dict[str, Any]:
        caller_id = resolve_caller(request, None)
        turns = get_engine().history.load(caller_id)
        return {"history": [turn.to_dict() for turn in turns]}

    @app.delete("/agent/conversation")
    def reset_conversation(request: Request) -> dict[str, Any]:
        caller_id = resolve_caller(request, None)
        get_engine().reset(caller_id)
        return {"success": True}

    return app


def resolve_caller(request: Request, body_user: Any) -> str:
    for candidate in (
        request.cookies.get(CALLER_COOKIE),
        request.headers.get(CALLER_HEADER),
        body_user,
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return DEFAULT_CALLER_ID


def _report_failure(route: str, caller_id: str, exc: Exception) -> None:
    get_log_manager().emit_exception(
        event="turn.failed",
        exc=exc,
        component="infrastructure.api",
        user_id=caller_id,
        payload={"route": route},
    )


def _chat_body(result: TurnResult) -> dict[str, Any]:
    return {
        "messageId": result.message_id,
        "text": result.reply_text,
        "intent": result.intent_name,
        "actions": result.actions_taken,
        "audio": base64.b64encode(result.audio).decode("ascii") if result.audio else None,
    }


def _webhook_text(payload: dict[str, Any]) -> str:
    for key in _WEBHOOK_TEXT_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


app = create_app()
