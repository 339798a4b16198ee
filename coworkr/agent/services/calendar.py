from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from coworkr.agent.services.errors import CalendarUnavailable, RecordStoreError
from coworkr.agent.services.rest_client import CoworkrRestClient

_PATH = "/api/calendar/events"


class ExternalCalendar(Protocol):
    def list(self, caller_id: str, days: int = 7) -> list[dict[str, Any]]: ...

    def create(self, caller_id: str, event: dict[str, Any]) -> dict[str, Any]: ...

    def update(self, caller_id: str, event_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, caller_id: str, event_id: str) -> None: ...


class RestCalendarClient:
    """Linked external calendar, reached through the app's calendar routes.

    Any transport failure or an unlinked calendar raises `CalendarUnavailable`.
    """

    def __init__(self, client: CoworkrRestClient | None = None) -> None:
        self._client = client or CoworkrRestClient()

    def list(self, caller_id: str, days: int = 7) -> list[dict[str, Any]]:
        body = self._call(lambda: self._client.get(caller_id, _PATH, params={"days": str(days)}))
        if body.get("connected") is False:
            raise CalendarUnavailable("calendar not connected")
        return [event for event in body.get("events") or [] if isinstance(event, dict)]

    def create(self, caller_id: str, event: dict[str, Any]) -> dict[str, Any]:
        body = self._call(lambda: self._client.post(caller_id, _PATH, dict(event)))
        return _event_from(body)

    def update(self, caller_id: str, event_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        body = self._call(lambda: self._client.put(caller_id, _PATH, {"id": event_id, **fields}))
        return _event_from(body)

    def delete(self, caller_id: str, event_id: str) -> None:
        self._call(lambda: self._client.delete(caller_id, _PATH, params={"id": event_id}))

    @staticmethod
    def _call(request: Any) -> dict[str, Any]:
        try:
            return request()
        except RecordStoreError as exc:
            raise CalendarUnavailable(str(exc)) from exc


class InMemoryCalendar:
    def __init__(self, *, linked: bool = True) -> None:
        self.linked = linked
        self._events: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def list(self, caller_id: str, days: int = 7) -> list[dict[str, Any]]:
        self._require_link()
        start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=max(1, days))
        with self._lock:
            events = [copy.deepcopy(event) for event in self._events.get(caller_id, [])]
        return [event for event in events if _within(event, start, end)]

    def create(self, caller_id: str, event: dict[str, Any]) -> dict[str, Any]:
        self._require_link()
        record = {"id": uuid.uuid4().hex, **copy.deepcopy(event)}
        with self._lock:
            self._events.setdefault(caller_id, []).append(record)
        return copy.deepcopy(record)

    def update(self, caller_id: str, event_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._require_link()
        with self._lock:
            for event in self._events.get(caller_id, []):
                if event.get("id") == event_id:
                    event.update(copy.deepcopy(fields))
                    return copy.deepcopy(event)
        raise CalendarUnavailable(f"event {event_id} not found")

    def delete(self, caller_id: str, event_id: str) -> None:
        self._require_link()
        with self._lock:
            events = self._events.get(caller_id, [])
            self._events[caller_id] = [event for event in events if event.get("id") != event_id]

    def _require_link(self) -> None:
        if not self.linked:
            raise CalendarUnavailable("calendar not connected")


def _event_from(body: dict[str, Any]) -> dict[str, Any]:
    if body.get("success") is False:
        raise CalendarUnavailable(str(body.get("error") or "calendar call failed"))
    event = body.get("event")
    if not isinstance(event, dict):
        raise CalendarUnavailable("calendar returned no event")
    return event


def _within(event: dict[str, Any], start: datetime, end: datetime) -> bool:
    raw = event.get("startTime")
    if not raw:
        return False
    try:
        value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return False
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return start <= value < end
