from __future__ import annotations

from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.cognition.pending_clarification import (
    PendingClarificationStore,
    merge_follow_up,
    should_merge,
)
from coworkr.agent.session.kv_store import InMemoryKeyValueStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _store(clock: FakeClock | None = None) -> PendingClarificationStore:
    kv = InMemoryKeyValueStore(ttl_seconds=60, clock=clock or FakeClock())
    return PendingClarificationStore(kv)


def test_short_reply_completes_assign_task_and_keeps_assignee() -> None:
    store = _store()
    store.set("u1", IntentName.ASSIGN_TASK, {"assigneeName": "David"}, "title")
    pending = store.get("u1")
    follow_up = Intent(name=IntentName.GENERAL_CHAT)

    assert should_merge(pending, follow_up, "product review")
    merged = merge_follow_up(pending, follow_up, "product review")

    assert merged.name is IntentName.ASSIGN_TASK
    assert merged.params == {"assigneeName": "David", "title": "product review"}
    assert merged.needs_more_info is None


def test_merge_asks_for_the_next_missing_field() -> None:
    store = _store()
    store.set("u1", IntentName.ASSIGN_TASK, {}, "title")
    merged = merge_follow_up(store.get("u1"), Intent(name=IntentName.QUERY), "product review")
    assert merged.params == {"title": "product review"}
    assert merged.needs_more_info == "Who should this task be assigned to?"
    assert merged.missing_field == "assigneeName"


def test_composite_question_overlays_new_params() -> None:
    store = _store()
    store.set("u1", IntentName.UPDATE_TASK, {"taskTitle": "Q4 report"}, None)
    follow_up = Intent(name=IntentName.UPDATE_TASK, params={"priority": "high", "taskTitle": ""})
    merged = merge_follow_up(store.get("u1"), follow_up, "make it high priority")
    assert merged.params == {"taskTitle": "Q4 report", "priority": "high"}
    assert merged.needs_more_info is None


def test_should_merge_rules() -> None:
    store = _store()
    assert not should_merge(None, Intent(name=IntentName.GENERAL_CHAT), "hi")

    pending = store.set("u1", IntentName.CREATE_TASK, {}, "title")
    assert should_merge(pending, Intent(name=IntentName.QUERY), "the quarterly numbers for our board meeting next week")
    assert should_merge(pending, Intent(name=IntentName.CREATE_EVENT), "call the bank")
    assert not should_merge(
        pending,
        Intent(name=IntentName.CREATE_EVENT, params={"title": "Board meeting"}),
        "actually schedule a board meeting next friday at ten",
    )


def test_newest_pending_replaces_older_and_clear_removes_it() -> None:
    store = _store()
    store.set("u1", IntentName.CREATE_TASK, {}, "title")
    store.set("u1", IntentName.CANCEL_EVENT, {}, "eventTitle")
    assert store.get("u1").intent is IntentName.CANCEL_EVENT
    assert store.get("u2") is None

    store.clear("u1")
    assert store.get("u1") is None


def test_pending_expires_with_the_state_ttl() -> None:
    clock = FakeClock()
    store = _store(clock)
    store.set("u1", IntentName.CREATE_TASK, {}, "title")
    clock.now = 61.0
    assert store.get("u1") is None
