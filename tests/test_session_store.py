from __future__ import annotations

import pytest

from coworkr.agent.session import ConversationHistory, InMemoryKeyValueStore
from coworkr.agent.session.history import render_turns


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_idle_ttl() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(ttl_seconds=10, clock=clock)
    store.set("a", 1)
    store.set("b", 2)

    clock.now = 8.0
    assert store.get("a") == 1

    clock.now = 15.0
    assert store.get("a") == 1
    assert store.get("b") is None
    assert len(store) == 1


def test_delete_is_idempotent() -> None:
    store = InMemoryKeyValueStore(ttl_seconds=10)
    store.set("a", 1)
    store.delete("a")
    store.delete("a")
    assert store.get("a") is None


def test_history_keeps_most_recent_turns_in_order() -> None:
    history = ConversationHistory(InMemoryKeyValueStore(ttl_seconds=60), limit=3)
    history.append("u1", "user", "one")
    history.append("u1", "assistant", "two")
    history.append("u1", "user", "three")
    history.append("u1", "assistant", "four")

    turns = history.load("u1")
    assert [turn.content for turn in turns] == ["two", "three", "four"]
    assert history.load("u2") == []

    history.clear("u1")
    assert history.load("u1") == []


def test_history_rejects_unknown_roles() -> None:
    history = ConversationHistory(InMemoryKeyValueStore(ttl_seconds=60), limit=5)
    with pytest.raises(ValueError):
        history.append("u1", "system", "hi")


def test_history_limit_comes_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COWORKR_HISTORY_LIMIT", "2")
    history = ConversationHistory(InMemoryKeyValueStore(ttl_seconds=60))
    for content in ("a", "b", "c"):
        history.append("u1", "user", content)
    assert [turn.content for turn in history.load("u1")] == ["b", "c"]


def test_render_turns_labels_roles() -> None:
    history = ConversationHistory(InMemoryKeyValueStore(ttl_seconds=60), limit=10)
    history.append("u1", "user", "add a task")
    history.append("u1", "assistant", "What's the task?")
    turns = history.load("u1")

    assert render_turns(turns, limit=4) == "User: add a task\nAssistant: What's the task?"
    assert render_turns(turns, limit=1) == "Assistant: What's the task?"
    assert render_turns(turns, limit=0) == ""
