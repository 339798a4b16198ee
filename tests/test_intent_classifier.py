from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timezone

import pytest

from coworkr.agent.cognition.intent_classifier import (
    IntentClassifier,
    build_classifier_prompt,
    interpret_reply,
)
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import build_snapshot
from coworkr.agent.session.history import ConversationTurn

NOW = datetime(2026, 10, 17, 15, 42, tzinfo=timezone.utc)


class StubLLM:
    def __init__(self, payload: str = "", *, error: Exception | None = None, delay: float = 0.0) -> None:
        self._payload = payload
        self._error = error
        self._delay = delay
        self.prompts: list[str] = []

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        _ = system_prompt
        self.prompts.append(user_prompt)
        if self._delay:
            time.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._payload


def _classify(llm: StubLLM, utterance: str = "hello", **records: list[dict]) -> object:
    snapshot = build_snapshot("u1", NOW, **records)
    return asyncio.run(IntentClassifier(llm, timeout_seconds=2).classify(utterance, snapshot, []))


@pytest.mark.parametrize(
    "llm",
    [
        StubLLM(error=RuntimeError("provider down")),
        StubLLM("Sure, I'll get right on that."),
        StubLLM('{"intent": "ORDER_PIZZA", "params": {"size": "large"}}'),
        StubLLM(""),
    ],
)
def test_failures_fall_back_to_general_chat(llm: StubLLM) -> None:
    intent = _classify(llm)
    assert intent.name is IntentName.GENERAL_CHAT
    assert intent.params == {}
    assert intent.needs_more_info is None


def test_timeout_falls_back_to_general_chat() -> None:
    llm = StubLLM('{"intent": "GREETING", "params": {}}', delay=0.3)
    snapshot = build_snapshot("u1", NOW)
    intent = asyncio.run(IntentClassifier(llm, timeout_seconds=0.05).classify("hi", snapshot, []))
    assert intent.name is IntentName.GENERAL_CHAT


def test_fenced_json_is_parsed() -> None:
    intent = _classify(StubLLM('```json\n{"intent": "CREATE_TASK", "params": {"title": "Call Bob"}}\n```'))
    assert intent.name is IntentName.CREATE_TASK
    assert intent.params == {"title": "Call Bob"}
    assert intent.needs_more_info is None


def test_json_embedded_in_prose_is_parsed() -> None:
    intent = interpret_reply('Here you go: {"intent": "greeting", "params": {}} hope that helps')
    assert intent.name is IntentName.GREETING


def test_missing_required_field_is_detected_even_when_model_says_ready() -> None:
    payload = {"intent": "ASSIGN_TASK", "params": {"assigneeName": "David"}, "needsMoreInfo": False}
    intent = interpret_reply(json.dumps(payload))
    assert intent.name is IntentName.ASSIGN_TASK
    assert intent.needs_more_info == "What's the task you want to assign?"
    assert intent.missing_field == "title"
    assert intent.params == {"assigneeName": "David"}


def test_model_question_is_kept_only_when_a_field_is_missing() -> None:
    asked = interpret_reply(
        json.dumps(
            {
                "intent": "ASSIGN_TASK",
                "params": {"assigneeName": "David"},
                "needsMoreInfo": "What should David work on?",
            }
        )
    )
    assert asked.needs_more_info == "What should David work on?"

    ready = interpret_reply(
        json.dumps({"intent": "CREATE_TASK", "params": {"title": "Call Bob"}, "needsMoreInfo": "Anything else?"})
    )
    assert ready.needs_more_info is None


def test_prompt_carries_capped_context_and_history() -> None:
    tasks = [{"title": f"Task {index}", "status": "pending"} for index in range(1, 8)]
    tasks.append({"title": "Shipped thing", "status": "done"})
    history = [
        ConversationTurn(role="user" if index % 2 == 0 else "assistant", content=f"turn {index}", timestamp="")
        for index in range(8)
    ]
    snapshot = build_snapshot("u1", NOW, tasks=tasks)

    prompt = build_classifier_prompt("what's next", snapshot, history)

    for index in range(1, 6):
        assert f'"Task {index}"' in prompt
    assert "Task 6" not in prompt
    assert "Shipped thing" not in prompt
    assert "turn 1" not in prompt
    assert "turn 2" in prompt
    assert "turn 7" in prompt
    assert "2026-10-18" in prompt
    assert 'User just said: "what\'s next"' in prompt


def test_classifier_sends_rendered_prompt_to_model() -> None:
    llm = StubLLM('{"intent": "DAILY_SUMMARY", "params": {}}')
    intent = _classify(llm, "summarize my day", tasks=[{"title": "Prepare deck", "status": "pending"}])
    assert intent.name is IntentName.DAILY_SUMMARY
    assert len(llm.prompts) == 1
    assert '"Prepare deck"' in llm.prompts[0]
