from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import pytest

from coworkr.agent.actions.base import ActionServices
from coworkr.agent.actions.dispatcher import ActionDispatcher
from coworkr.agent.cognition.intent_classifier import IntentClassifier
from coworkr.agent.cognition.pending_clarification import PendingClarificationStore
from coworkr.agent.cognition.prompts import CLASSIFIER_SYSTEM_PROMPT
from coworkr.agent.cognition.response_composer import ResponseComposer
from coworkr.agent.context.assembler import ContextAssembler
from coworkr.agent.conversation import REPLY_DIRECT, ConversationEngine
from coworkr.agent.services.errors import SpeechUnavailable
from coworkr.agent.services.record_store import InMemoryRecordStore
from coworkr.agent.services.team_roster import InMemoryTeamRoster
from coworkr.agent.session.history import ConversationHistory
from coworkr.agent.session.kv_store import InMemoryKeyValueStore

NOW = datetime(2026, 10, 17, 15, 42, tzinfo=timezone.utc)

MEMBERS = [
    {"id": "david-lee", "firstName": "David", "lastName": "Lee", "title": "Account Executive"},
    {"id": "jane-smith", "firstName": "Jane", "lastName": "Smith", "title": "Senior Developer"},
]


class ScriptedLLM:
    """Plays back classifier payloads and composer replies in order."""

    def __init__(self, classifications: list[Any], replies: list[str] | None = None) -> None:
        self._classifications = list(classifications)
        self._replies = list(replies or [])
        self.composer_prompts: list[str] = []

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        if system_prompt == CLASSIFIER_SYSTEM_PROMPT:
            payload = self._classifications.pop(0)
            if isinstance(payload, Exception):
                raise payload
            return payload if isinstance(payload, str) else json.dumps(payload)
        self.composer_prompts.append(user_prompt)
        return self._replies.pop(0) if self._replies else "Okay."


class FakeSpeech:
    def __init__(self, *, error: Exception | None = None) -> None:
        self._error = error
        self.spoken: list[tuple[str, str | None]] = []

    def synthesize(self, text: str, voice_id: str | None = None) -> bytes:
        if self._error is not None:
            raise self._error
        self.spoken.append((text, voice_id))
        return b"mp3-bytes"


def _engine(llm: ScriptedLLM, *, speech: Any = None) -> tuple[ConversationEngine, InMemoryRecordStore]:
    store = InMemoryRecordStore()
    state = InMemoryKeyValueStore(ttl_seconds=3600)
    engine = ConversationEngine(
        assembler=ContextAssembler(
            record_store=store,
            calendar=None,
            roster=InMemoryTeamRoster(MEMBERS),
            team_id="t1",
            timezone_name="UTC",
            clock=lambda tz: NOW,
        ),
        classifier=IntentClassifier(llm, timeout_seconds=5),
        dispatcher=ActionDispatcher(ActionServices(record_store=store)),
        composer=ResponseComposer(llm, timeout_seconds=5),
        history=ConversationHistory(state, limit=20),
        pending=PendingClarificationStore(state),
        speech=speech,
        voice="rachel",
    )
    return engine, store


def test_clarification_round_trip_assigns_task() -> None:
    llm = ScriptedLLM(
        [
            {
                "intent": "ASSIGN_TASK",
                "params": {"assigneeName": "David"},
                "needsMoreInfo": "What's the task you want to assign?",
            },
            {"intent": "GENERAL_CHAT", "params": {}},
        ],
        replies=["Done, I assigned product review to David Lee."],
    )
    engine, store = _engine(llm)

    first = asyncio.run(engine.handle_turn("create a task for David", "u1"))
    assert first.reply_text == "What's the task you want to assign?"
    assert first.intent_name == "ASSIGN_TASK"
    assert first.actions_taken == []
    assert engine.pending.get("u1") is not None
    assert store.list("david-lee", "tasks") == []

    second = asyncio.run(engine.handle_turn("product review", "u1"))
    assert second.intent_name == "ASSIGN_TASK"
    assert second.reply_text == "Done, I assigned product review to David Lee."
    assert second.actions_taken[0]["type"] == "ASSIGN_TASK"
    assert second.actions_taken[0]["outcome"]["success"] is True
    (task,) = store.list("david-lee", "tasks")
    assert task["title"] == "product review"
    assert engine.pending.get("u1") is None
    assert [turn.role for turn in engine.history.load("u1")] == ["user", "assistant", "user", "assistant"]


def test_classifier_failure_still_produces_a_reply() -> None:
    llm = ScriptedLLM([RuntimeError("provider down")], replies=["Hi there! How can I help?"])
    engine, _ = _engine(llm)
    result = asyncio.run(engine.handle_turn("blorp", "u1"))
    assert result.intent_name == "GENERAL_CHAT"
    assert result.reply_text == "Hi there! How can I help?"
    assert result.actions_taken == []


def test_direct_reply_mode_skips_composer() -> None:
    llm = ScriptedLLM([{"intent": "CREATE_TASK", "params": {"title": "Call Bob"}}])
    engine, store = _engine(llm)
    result = asyncio.run(engine.handle_turn("remind me to call Bob", "u1", reply_mode=REPLY_DIRECT))
    assert result.reply_text == 'Created task "Call Bob".'
    assert llm.composer_prompts == []
    assert len(store.list("u1", "tasks")) == 1


def test_greeting_is_not_reported_as_an_action() -> None:
    llm = ScriptedLLM([{"intent": "GREETING", "params": {}}], replies=["Good afternoon!"])
    engine, _ = _engine(llm)
    result = asyncio.run(engine.handle_turn("hello", "u1"))
    assert result.actions_taken == []
    assert result.outcome is not None and result.outcome.success


def test_voice_reply_is_synthesized() -> None:
    speech = FakeSpeech()
    llm = ScriptedLLM([{"intent": "GREETING", "params": {}}], replies=["Good afternoon!"])
    engine, _ = _engine(llm, speech=speech)
    result = asyncio.run(engine.handle_turn("hello", "u1", True))
    assert result.audio == b"mp3-bytes"
    assert speech.spoken == [("Good afternoon!", "rachel")]


def test_speech_failure_keeps_text_reply() -> None:
    speech = FakeSpeech(error=SpeechUnavailable("quota exceeded"))
    llm = ScriptedLLM([{"intent": "GREETING", "params": {}}], replies=["Good afternoon!"])
    engine, _ = _engine(llm, speech=speech)
    result = asyncio.run(engine.handle_turn("hello", "u1", True))
    assert result.audio is None
    assert result.reply_text == "Good afternoon!"


def test_turns_from_one_caller_are_serialized() -> None:
    llm = ScriptedLLM(
        [{"intent": "GREETING", "params": {}}, {"intent": "GREETING", "params": {}}],
        replies=["first", "second"],
    )
    engine, _ = _engine(llm)

    async def run_both() -> None:
        await asyncio.gather(engine.handle_turn("hi", "u1"), engine.handle_turn("hey", "u1"))

    asyncio.run(run_both())
    turns = engine.history.load("u1")
    assert [turn.role for turn in turns] == ["user", "assistant", "user", "assistant"]


def test_empty_utterance_is_rejected() -> None:
    engine, _ = _engine(ScriptedLLM([]))
    with pytest.raises(ValueError):
        asyncio.run(engine.handle_turn("   ", "u1"))


def test_reset_clears_history_and_pending() -> None:
    llm = ScriptedLLM([{"intent": "CREATE_TASK", "params": {}}])
    engine, _ = _engine(llm)
    asyncio.run(engine.handle_turn("add a task", "u1"))
    assert engine.pending.get("u1") is not None

    engine.reset("u1")
    assert engine.pending.get("u1") is None
    assert engine.history.load("u1") == []
