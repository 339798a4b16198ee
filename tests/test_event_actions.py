from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from coworkr.agent.actions.base import WRITE_FAILED_MESSAGE, ActionOutcome, ActionServices
from coworkr.agent.actions.dispatcher import ActionDispatcher
from coworkr.agent.actions.events import NOT_FOUND_MESSAGE, find_event
from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.context.assembler import build_snapshot
from coworkr.agent.services.errors import CalendarUnavailable
from coworkr.agent.services.record_store import InMemoryRecordStore

NOW = datetime(2026, 10, 17, 15, 42, tzinfo=timezone.utc)


class FakeCalendar:
    def __init__(self, *, linked: bool = True) -> None:
        self.linked = linked
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []

    def list(self, caller_id: str, days: int = 7) -> list[dict[str, Any]]:
        return []

    def create(self, caller_id: str, event: dict[str, Any]) -> dict[str, Any]:
        if not self.linked:
            raise CalendarUnavailable("calendar not connected")
        self.created.append(event)
        return {"id": "ext-1", **event}

    def update(self, caller_id: str, event_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self.updated.append((event_id, fields))
        return {"id": event_id, **fields}

    def delete(self, caller_id: str, event_id: str) -> None:
        self.deleted.append(event_id)


def _event(event_id: str, title: str, start: str, end: str | None = None, source: str = "external") -> dict[str, Any]:
    event = {"id": event_id, "title": title, "startTime": start, "source": source}
    if end:
        event["endTime"] = end
    return event


def _dispatch(
    name: IntentName,
    params: dict[str, Any],
    *,
    events: list[dict[str, Any]] | None = None,
    store: InMemoryRecordStore | None = None,
    calendar: Any = None,
) -> ActionOutcome:
    store = store or InMemoryRecordStore()
    dispatcher = ActionDispatcher(ActionServices(record_store=store, calendar=calendar))
    snapshot = build_snapshot("u1", NOW, events=events or [])
    return asyncio.run(dispatcher.dispatch(Intent(name=name, params=params), "u1", snapshot))


def test_create_event_prefers_linked_calendar() -> None:
    calendar = FakeCalendar()
    store = InMemoryRecordStore()
    outcome = _dispatch(
        IntentName.CREATE_EVENT,
        {"title": "Client demo", "date": "tomorrow", "time": "2pm"},
        store=store,
        calendar=calendar,
    )
    assert outcome.success
    assert outcome.message == 'Created "Client demo" on Sunday, Oct 18 at 2:00 PM.'
    assert outcome.data["source"] == "external"
    assert calendar.created[0]["startTime"] == "2026-10-18T14:00:00+00:00"
    assert calendar.created[0]["endTime"] == "2026-10-18T15:00:00+00:00"
    assert store.list("u1", "events") == []


def test_create_event_falls_back_to_local_store() -> None:
    store = InMemoryRecordStore()
    outcome = _dispatch(
        IntentName.CREATE_EVENT,
        {"title": "Client demo", "date": "tomorrow", "time": "2pm", "duration": "45 minutes"},
        store=store,
        calendar=FakeCalendar(linked=False),
    )
    assert outcome.success
    assert outcome.data["source"] == "local"
    (event,) = store.list("u1", "events")
    assert event["endTime"] == "2026-10-18T14:45:00+00:00"


def test_update_event_exact_title_routes_to_external_calendar() -> None:
    calendar = FakeCalendar()
    events = [
        _event("e1", "Team Sync Extended", "2026-10-18T10:00:00+00:00", source="local"),
        _event("e2", "Team Sync", "2026-10-19T10:00:00+00:00"),
    ]
    outcome = _dispatch(
        IntentName.UPDATE_EVENT,
        {"eventTitle": "team sync", "location": "Room 4"},
        events=events,
        calendar=calendar,
    )
    assert outcome.success
    assert outcome.message == 'Updated "Team Sync": location to "Room 4".'
    assert calendar.updated == [("e2", {"location": "Room 4"})]


def test_update_event_by_time_updates_local_record() -> None:
    store = InMemoryRecordStore(
        {"u1": {"events": [{"title": "Product sync", "startTime": "2026-10-17T18:00:00+00:00"}]}}
    )
    events = [{**event, "source": "local"} for event in store.list("u1", "events")]
    outcome = _dispatch(
        IntentName.UPDATE_EVENT,
        {"eventTime": "6pm", "newTitle": "Product Review"},
        events=events,
        store=store,
    )
    assert outcome.success
    assert store.list("u1", "events")[0]["title"] == "Product Review"


def test_update_event_rename_only_skips_event_already_named() -> None:
    calendar = FakeCalendar()
    events = [
        _event("p1", "Product Review", "2026-10-17T10:00:00+00:00"),
        _event("w1", "Weekly sync", "2026-10-17T16:00:00+00:00"),
        _event("t1", "Tomorrow thing", "2026-10-18T16:00:00+00:00"),
    ]
    outcome = _dispatch(IntentName.UPDATE_EVENT, {"newTitle": "Product Review"}, events=events, calendar=calendar)
    assert outcome.success
    assert calendar.updated == [("w1", {"title": "Product Review"})]


def test_reschedule_preserves_duration() -> None:
    calendar = FakeCalendar()
    events = [_event("d1", "Design review", "2026-10-18T10:00:00+00:00", "2026-10-18T10:30:00+00:00")]
    outcome = _dispatch(
        IntentName.UPDATE_EVENT,
        {"eventTitle": "design review", "date": "monday", "time": "2pm"},
        events=events,
        calendar=calendar,
    )
    assert outcome.message == 'Updated "Design review": rescheduled to Monday, Oct 19 at 2:00 PM.'
    assert calendar.updated == [
        ("d1", {"startTime": "2026-10-19T14:00:00+00:00", "endTime": "2026-10-19T14:30:00+00:00"})
    ]


def test_reschedule_to_new_date_keeps_clock_time() -> None:
    calendar = FakeCalendar()
    events = [_event("d1", "Design review", "2026-10-18T10:00:00+00:00", "2026-10-18T10:30:00+00:00")]
    _dispatch(IntentName.UPDATE_EVENT, {"eventTitle": "design review", "date": "tuesday"}, events=events, calendar=calendar)
    assert calendar.updated[0][1]["startTime"] == "2026-10-20T10:00:00+00:00"


def test_update_event_not_found_messages() -> None:
    events = [_event("t1", "Tomorrow thing", "2026-10-18T16:00:00+00:00")]
    by_title = _dispatch(IntentName.UPDATE_EVENT, {"eventTitle": "board meeting", "location": "HQ"}, events=events)
    assert by_title.error == 'I couldn\'t find an event called "board meeting".'

    by_time = _dispatch(
        IntentName.UPDATE_EVENT,
        {"eventTime": "2026-10-25T09:00:00", "location": "HQ"},
        events=events,
    )
    assert by_time.error == NOT_FOUND_MESSAGE


def test_update_external_event_without_calendar_fails_cleanly() -> None:
    events = [_event("e2", "Team Sync", "2026-10-19T10:00:00+00:00")]
    outcome = _dispatch(IntentName.UPDATE_EVENT, {"eventTitle": "team sync", "location": "Room 4"}, events=events)
    assert not outcome.success
    assert outcome.message == WRITE_FAILED_MESSAGE


def test_update_event_needs_a_target_or_a_change() -> None:
    outcome = _dispatch(IntentName.UPDATE_EVENT, {})
    assert outcome.needs_more_info == "Which meeting do you want to update, and what should I change?"


def test_cancel_event_deletes_from_its_source() -> None:
    store = InMemoryRecordStore({"u1": {"events": [{"title": "Team Standup", "startTime": "2026-10-18T10:00:00+00:00"}]}})
    calendar = FakeCalendar()
    events = [{**event, "source": "local"} for event in store.list("u1", "events")]
    events.append(_event("g1", "Lunch with Ana", "2026-10-18T12:00:00+00:00"))

    local = _dispatch(IntentName.CANCEL_EVENT, {"eventTitle": "standup"}, events=events, store=store, calendar=calendar)
    assert local.message == 'Cancelled "Team Standup".'
    assert store.list("u1", "events") == []

    external = _dispatch(IntentName.CANCEL_EVENT, {"eventTitle": "lunch"}, events=events, store=store, calendar=calendar)
    assert external.success
    assert calendar.deleted == ["g1"]


def test_cancel_event_with_unknown_id_deletes_nothing() -> None:
    store = InMemoryRecordStore({"u1": {"events": [{"title": "Team Standup", "startTime": "2026-10-18T10:00:00+00:00"}]}})
    calendar = FakeCalendar()
    events = [{**event, "source": "local"} for event in store.list("u1", "events")]

    outcome = _dispatch(IntentName.CANCEL_EVENT, {"eventId": "g-404"}, events=events, store=store, calendar=calendar)

    assert not outcome.success
    assert outcome.error == 'I couldn\'t find an event called "g-404".'
    assert calendar.deleted == []
    assert len(store.list("u1", "events")) == 1


def test_find_event_time_window_pass() -> None:
    events = [
        {"title": "Early", "startTime": "2026-10-18T08:00:00+00:00"},
        {"title": "Late", "startTime": "2026-10-18T14:30:00+00:00"},
    ]
    snapshot = build_snapshot("u1", NOW, events=events)
    found = find_event(
        events,
        title=None,
        target=datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc),
        today=NOW,
        new_title=None,
        start_of=snapshot.start_of,
    )
    assert found["title"] == "Late"
