from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from coworkr.agent.actions.base import ActionOutcome
from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.cognition.response_composer import (
    FALLBACK_REPLY,
    ResponseComposer,
    build_composer_prompt,
    sanitize_reply,
)
from coworkr.agent.context.assembler import ContextSnapshot, build_snapshot

NOW = datetime(2026, 10, 17, 15, 42, tzinfo=timezone.utc)

OPEN_TITLES = [
    "Prepare Q4 sales report",
    "Review marketing proposal",
    "Update CRM contacts",
    "Call Acme about renewal",
    "Draft hiring plan",
    "Book venue for offsite",
    "Send onboarding pack",
]


class EchoLLM:
    """Answers with every quoted open task title found in the prompt."""

    def __init__(self) -> None:
        self.prompts: list[str] = []

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append(user_prompt)
        found = [title for title in OPEN_TITLES if f'"{title}"' in user_prompt]
        return "**You have these tasks:** " + ", ".join(found)


class FailingLLM:
    def complete(self, system_prompt: str, user_prompt: str) -> str:
        raise RuntimeError("provider down")


def _snapshot() -> ContextSnapshot:
    tasks = [{"title": title, "status": "pending", "priority": "medium"} for title in OPEN_TITLES]
    tasks.append({"title": "Closed last week", "status": "done"})
    return build_snapshot("u1", NOW, tasks=tasks)


def test_prompt_lists_every_open_task() -> None:
    snapshot = _snapshot()
    intent = Intent(name=IntentName.QUERY, params={"dataType": "tasks"})
    outcome = ActionOutcome.ok("You have 7 pending tasks.", data=list(snapshot.tasks[:7]))

    prompt = build_composer_prompt("what are my tasks", snapshot, intent, outcome, [])

    assert "Open tasks (7)" in prompt
    assert "Completed tasks (1)" in prompt
    assert "QUERY RESULTS (tasks)" in prompt
    for title in OPEN_TITLES:
        assert f'"{title}"' in prompt
    assert "Action result: SUCCESS - You have 7 pending tasks." in prompt


@pytest.mark.parametrize("params", [{"dataType": "tasks"}, {"data_type": "Tasks"}])
def test_query_results_are_labelled_from_validated_params(params: dict[str, str]) -> None:
    snapshot = _snapshot()
    outcome = ActionOutcome.ok("You have 3 pending tasks.", data=list(snapshot.tasks[:3]))

    prompt = build_composer_prompt("list my tasks", snapshot, Intent(name=IntentName.QUERY, params=params), outcome, [])

    results_line = next(line for line in prompt.splitlines() if line.startswith("QUERY RESULTS"))
    assert results_line.startswith("QUERY RESULTS (tasks):")
    for title in OPEN_TITLES[:3]:
        assert title in results_line
    assert "Unnamed account" not in prompt


def test_composed_reply_enumerates_all_seven_titles() -> None:
    llm = EchoLLM()
    composer = ResponseComposer(llm, timeout_seconds=2)
    reply = asyncio.run(
        composer.compose("what are my tasks", _snapshot(), Intent(name=IntentName.TASK_SUMMARY), None, [])
    )
    assert reply.startswith("You have these tasks:")
    for title in OPEN_TITLES:
        assert title in reply
    assert "Closed last week" not in reply


def test_failed_outcome_is_reported_to_the_model() -> None:
    outcome = ActionOutcome.failed("I couldn't find a task called \"taxes\".")
    prompt = build_composer_prompt(
        "finish taxes", _snapshot(), Intent(name=IntentName.COMPLETE_TASK), outcome, []
    )
    assert 'Action result: FAILED - I couldn\'t find a task called "taxes".' in prompt
    assert "QUERY RESULTS" not in prompt


def test_model_failure_falls_back() -> None:
    composer = ResponseComposer(FailingLLM(), timeout_seconds=2)
    reply = asyncio.run(composer.compose("hi", _snapshot(), Intent(name=IntentName.GENERAL_CHAT), None, []))
    assert reply == FALLBACK_REPLY


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('"**Sure!** You have `3` tasks.\n\n# Done"', "Sure! You have 3 tasks. Done"),
        ("  plain   reply  ", "plain reply"),
        ("“Quoted”", "Quoted"),
        (None, ""),
    ],
)
def test_sanitize_reply(raw: object, expected: str) -> None:
    assert sanitize_reply(raw) == expected
