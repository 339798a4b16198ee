from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar
from zoneinfo import ZoneInfo

from coworkr.agent.cognition.datetime_resolver import DateTimeResolver, parse_iso
from coworkr.agent.cognition.intent_params import IntentParams
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.services.calendar import ExternalCalendar
from coworkr.agent.services.errors import RecordStoreError
from coworkr.agent.services.record_store import RecordStore

logger = logging.getLogger(__name__)

WRITE_FAILED_MESSAGE = "Something went wrong, please try again."

_CLOCK_HINT = re.compile(
    r"\d\s*(am|pm|a\.m\.|p\.m\.)|\d:\d{2}|\b(noon|midday|midnight|morning|afternoon|evening)\b|half past|quarter"
)
_AT_HOUR = re.compile(
    r"\bat\s+((?:\d{1,2}|one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve)\b.*)$"
)


@dataclass(frozen=True)
class ActionOutcome:
    success: bool
    data: Any = None
    error: str | None = None
    needs_more_info: str | None = None
    missing_field: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ActionOutcome":
        return cls(success=True, data=data, message=message)

    @classmethod
    def failed(cls, error: str, *, message: str | None = None, data: Any = None) -> "ActionOutcome":
        return cls(success=False, error=error, message=message or error, data=data)

    @classmethod
    def ask(cls, question: str, missing_field: str | None = None) -> "ActionOutcome":
        return cls(success=False, needs_more_info=question, missing_field=missing_field, message=question)

    @classmethod
    def write_failed(cls) -> "ActionOutcome":
        return cls.failed(WRITE_FAILED_MESSAGE)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error:
            payload["error"] = self.error
        if self.needs_more_info:
            payload["needsMoreInfo"] = self.needs_more_info
        if self.message:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class ActionServices:
    record_store: RecordStore
    calendar: ExternalCalendar | None = None
    resolver: DateTimeResolver = field(default_factory=DateTimeResolver)
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))


class ActionHandler(ABC):
    """One handler per intent. Handlers resolve every reference before writing."""

    intent: ClassVar[IntentName]

    def __init__(self, services: ActionServices) -> None:
        self.services = services

    @abstractmethod
    def handle(self, params: IntentParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        raise NotImplementedError

    @property
    def store(self) -> RecordStore:
        return self.services.record_store

    def resolve(self, date_expr: str | None, time_expr: str | None, context: ContextSnapshot) -> datetime:
        return self.services.resolver.resolve(date_expr, time_expr, context.now)

    def read(self, caller_id: str, resource: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            return self.store.list(caller_id, resource, filters)
        except RecordStoreError as exc:
            logger.warning("record read failed user_id=%s resource=%s error=%s", caller_id, resource, exc)
            return []

    def when(
        self,
        context: ContextSnapshot,
        *,
        instant: str | None = None,
        date_expr: str | None = None,
        time_expr: str | None = None,
    ) -> datetime:
        """Explicit ISO datetimes win; spoken fragments go through the resolver."""
        if instant:
            parsed = parse_iso(instant, context.now.tzinfo)
            if parsed is not None:
                return parsed
            lowered = instant.lower()
            at_hour = _AT_HOUR.search(lowered)
            if not date_expr:
                date_expr = lowered[: at_hour.start()].strip() if at_hour else instant
            if not time_expr:
                if at_hour:
                    time_expr = at_hour.group(1)
                elif _CLOCK_HINT.search(lowered):
                    time_expr = instant
        return self.resolve(date_expr, time_expr, context)


def plural(count: int, noun: str, suffix: str = "s") -> str:
    return f"{count} {noun}{'' if count == 1 else suffix}"


def join_names(names: list[str]) -> str:
    names = [name for name in names if name]
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} and {names[-1]}"


def iso(value: datetime) -> str:
    return value.isoformat()
