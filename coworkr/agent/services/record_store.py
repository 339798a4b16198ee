from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from coworkr.agent.services.errors import RecordNotFound, RecordStoreError
from coworkr.agent.services.rest_client import CoworkrRestClient

RESOURCES = ("tasks", "projects", "contacts", "deals", "accounts", "events", "timesheets")

_SINGULAR = {
    "tasks": "task",
    "projects": "project",
    "contacts": "contact",
    "deals": "deal",
    "accounts": "account",
    "events": "event",
    "timesheets": "timesheet",
}


class RecordStore(Protocol):
    def list(self, caller_id: str, resource: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]: ...

    def create(self, caller_id: str, resource: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    def update(self, caller_id: str, resource: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, caller_id: str, resource: str, record_id: str) -> None: ...


class RestRecordStore:
    def __init__(self, client: CoworkrRestClient | None = None) -> None:
        self._client = client or CoworkrRestClient()

    def list(self, caller_id: str, resource: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        _check_resource(resource)
        params = {str(k): str(v) for k, v in (filters or {}).items() if v is not None}
        body = self._client.get(caller_id, f"/api/{resource}", params=params or None)
        records = body.get(resource)
        if records is None:
            records = body.get("items")
        return [record for record in records or [] if isinstance(record, dict)]

    def create(self, caller_id: str, resource: str, fields: dict[str, Any]) -> dict[str, Any]:
        _check_resource(resource)
        body = self._client.post(caller_id, f"/api/{resource}", dict(fields))
        return _single(body, resource)

    def update(self, caller_id: str, resource: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        _check_resource(resource)
        body = self._client.put(caller_id, f"/api/{resource}", {"id": record_id, **fields})
        return _single(body, resource)

    def delete(self, caller_id: str, resource: str, record_id: str) -> None:
        _check_resource(resource)
        self._client.delete(caller_id, f"/api/{resource}", params={"id": record_id})


class InMemoryRecordStore:
    """Per-caller record collections kept in process memory.

    Assigns `id`, `createdAt` and `updatedAt` like the real store. Filters
    match by string equality, plus `upcoming=true` for events and `limit`.
    """

    def __init__(self, seed: dict[str, dict[str, list[dict[str, Any]]]] | None = None) -> None:
        self._records: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self._lock = threading.Lock()
        for caller_id, resources in (seed or {}).items():
            for resource, records in resources.items():
                for record in records:
                    self.create(caller_id, resource, record)

    def list(self, caller_id: str, resource: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        _check_resource(resource)
        criteria = dict(filters or {})
        limit = _as_limit(criteria.pop("limit", None))
        upcoming = str(criteria.pop("upcoming", "")).lower() == "true"
        now = datetime.now(timezone.utc)
        with self._lock:
            records = list(self._records.get((caller_id, resource), []))
        matched: list[dict[str, Any]] = []
        for record in records:
            if upcoming and not _starts_after(record, now):
                continue
            if any(str(record.get(key)) != str(value) for key, value in criteria.items()):
                continue
            matched.append(copy.deepcopy(record))
        if upcoming:
            matched.sort(key=lambda record: str(record.get("startTime") or ""))
        return matched[:limit] if limit is not None else matched

    def create(self, caller_id: str, resource: str, fields: dict[str, Any]) -> dict[str, Any]:
        _check_resource(resource)
        stamp = _now()
        record = {"createdAt": stamp, "updatedAt": stamp, **copy.deepcopy(fields)}
        record.setdefault("id", uuid.uuid4().hex)
        with self._lock:
            self._records.setdefault((caller_id, resource), []).append(record)
        return copy.deepcopy(record)

    def update(self, caller_id: str, resource: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        _check_resource(resource)
        with self._lock:
            for record in self._records.get((caller_id, resource), []):
                if record.get("id") == record_id:
                    record.update(copy.deepcopy(fields))
                    record["updatedAt"] = _now()
                    return copy.deepcopy(record)
        raise RecordNotFound(f"{resource}/{record_id} not found")

    def delete(self, caller_id: str, resource: str, record_id: str) -> None:
        _check_resource(resource)
        with self._lock:
            records = self._records.get((caller_id, resource), [])
            remaining = [record for record in records if record.get("id") != record_id]
            if len(remaining) == len(records):
                raise RecordNotFound(f"{resource}/{record_id} not found")
            self._records[(caller_id, resource)] = remaining


def _check_resource(resource: str) -> None:
    if resource not in RESOURCES:
        raise RecordStoreError(f"unknown resource: {resource}")


def _single(body: dict[str, Any], resource: str) -> dict[str, Any]:
    record = body.get(_SINGULAR[resource])
    if isinstance(record, dict):
        return record
    return {key: value for key, value in body.items() if key != "success"}


def _starts_after(record: dict[str, Any], now: datetime) -> bool:
    raw = record.get("startTime")
    if not raw:
        return False
    try:
        start = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return False
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return start >= now


def _as_limit(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        return None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
