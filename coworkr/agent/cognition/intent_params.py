from __future__ import annotations

import logging
import re
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from coworkr.agent.cognition.intent_types import IntentName

logger = logging.getLogger(__name__)


class IntentParams(BaseModel):
    """Base for per-intent parameter bags.

    Keys arrive camelCased from the classifier. Blank strings count as absent.
    `REQUIRED` lists `(field, question)` pairs checked in order.
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )

    REQUIRED: ClassVar[tuple[tuple[str, str], ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip() or None
            if value is None:
                continue
            cleaned[key] = value
        return cleaned

    def missing(self) -> tuple[str | None, str] | None:
        for field_name, question in self.REQUIRED:
            if _is_blank(getattr(self, field_name)):
                return _alias(type(self), field_name), question
        return None

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EmptyParams(IntentParams):
    pass


class CreateTaskParams(IntentParams):
    REQUIRED = (("title", "What's the task you want to create?"),)

    title: str | None = None
    description: str | None = None
    priority: str | None = None
    due_date: str | None = None
    project_id: str | None = None


class AssignTaskParams(IntentParams):
    REQUIRED = (
        ("title", "What's the task you want to assign?"),
        ("assignee_name", "Who should this task be assigned to?"),
    )

    title: str | None = None
    assignee_name: str | None = None
    description: str | None = None
    priority: str | None = None
    due_date: str | None = None


class CompleteTaskParams(IntentParams):
    REQUIRED = (("task_title", "Which task should I mark as complete?"),)

    task_id: str | None = None
    task_title: str | None = None

    def missing(self) -> tuple[str | None, str] | None:
        if self.task_id:
            return None
        return super().missing()


class DeleteTaskParams(CompleteTaskParams):
    REQUIRED = (("task_title", "Which task should I delete?"),)


class UpdateTaskParams(IntentParams):
    REQUIRED = (("task_title", "Which task do you want to update?"),)
    CHANGES_QUESTION: ClassVar[str] = "What would you like to change about this task?"

    task_id: str | None = None
    task_title: str | None = None
    new_title: str | None = None
    status: str | None = None
    priority: str | None = None
    due_date: str | None = None
    description: str | None = None
    updates: dict[str, Any] | None = None

    def missing(self) -> tuple[str | None, str] | None:
        if not self.task_id:
            found = super().missing()
            if found:
                return found
        if not self.has_changes():
            return None, self.CHANGES_QUESTION
        return None

    def has_changes(self) -> bool:
        return any(
            not _is_blank(value)
            for value in (
                self.new_title,
                self.status,
                self.priority,
                self.due_date,
                self.description,
                self.updates,
            )
        )

    @field_validator("updates", mode="before")
    @classmethod
    def _dict_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, dict) and value else None


class CreateEventParams(IntentParams):
    REQUIRED = (("title", "What would you like to call this event?"),)

    title: str | None = None
    description: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    date: str | None = None
    time: str | None = None
    duration: int | None = None
    location: str | None = None
    attendees: list[str] = Field(default_factory=list)

    @field_validator("duration", mode="before")
    @classmethod
    def _minutes(cls, value: Any) -> Any:
        return _parse_minutes(value)

    @field_validator("attendees", mode="before")
    @classmethod
    def _names(cls, value: Any) -> Any:
        return _parse_name_list(value)


class UpdateEventParams(IntentParams):
    IDENTIFY_QUESTION: ClassVar[str] = "Which meeting do you want to update, and what should I change?"
    CHANGES_QUESTION: ClassVar[str] = "What would you like to change about this event?"

    event_id: str | None = None
    event_title: str | None = None
    event_time: str | None = None
    new_title: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    description: str | None = None
    updates: dict[str, Any] | None = None

    def missing(self) -> tuple[str | None, str] | None:
        identified = any(
            not _is_blank(value) for value in (self.event_id, self.event_title, self.event_time)
        )
        if not identified and not self.has_changes():
            return "eventTitle", self.IDENTIFY_QUESTION
        if not self.has_changes():
            return None, self.CHANGES_QUESTION
        return None

    def has_changes(self) -> bool:
        return any(
            not _is_blank(value)
            for value in (
                self.new_title,
                self.date,
                self.time,
                self.location,
                self.description,
                self.updates,
            )
        )

    @field_validator("updates", mode="before")
    @classmethod
    def _dict_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, dict) and value else None


class CancelEventParams(IntentParams):
    REQUIRED = (("event_title", "Which event should I cancel?"),)

    event_id: str | None = None
    event_title: str | None = None
    event_time: str | None = None

    def missing(self) -> tuple[str | None, str] | None:
        if self.event_id:
            return None
        return super().missing()


class CreateProjectParams(IntentParams):
    REQUIRED = (("name", "What's the name of this project?"),)

    name: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    due_date: str | None = None


class CreateContactParams(IntentParams):
    QUESTION: ClassVar[str] = "What's the contact's name and email?"

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None

    def missing(self) -> tuple[str | None, str] | None:
        if self.first_name or self.last_name or self.email:
            return None
        return "firstName", self.QUESTION


class CreateDealParams(IntentParams):
    REQUIRED = (("name", "What's the name of this deal?"),)

    name: str | None = None
    value: float | None = None
    stage: str | None = None
    contact_id: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Any:
        return _parse_amount(value)


class ScheduleMeetingParams(IntentParams):
    WHO_QUESTION: ClassVar[str] = "Who would you like to schedule the meeting with?"
    REQUIRED = (("title", "What would you like to call this meeting?"),)

    attendee_name: str | None = None
    attendees: list[str] = Field(default_factory=list)
    title: str | None = None
    description: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    date: str | None = None
    time: str | None = None
    duration: int | None = None
    location: str | None = None

    def missing(self) -> tuple[str | None, str] | None:
        if not self.names():
            return "attendeeName", self.WHO_QUESTION
        return super().missing()

    def names(self) -> list[str]:
        if self.attendees:
            return list(self.attendees)
        if self.attendee_name:
            return [self.attendee_name]
        return []

    @field_validator("duration", mode="before")
    @classmethod
    def _minutes(cls, value: Any) -> Any:
        return _parse_minutes(value)

    @field_validator("attendees", mode="before")
    @classmethod
    def _names(cls, value: Any) -> Any:
        return _parse_name_list(value)


class MemberParams(IntentParams):
    member_name: str | None = None


class QueryParams(IntentParams):
    data_type: str | None = None
    filters: dict[str, Any] | None = None

    @field_validator("data_type", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("filters", mode="before")
    @classmethod
    def _dict_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, dict) and value else None


PARAMS_BY_INTENT: dict[IntentName, type[IntentParams]] = {
    IntentName.QUERY: QueryParams,
    IntentName.CREATE_TASK: CreateTaskParams,
    IntentName.UPDATE_TASK: UpdateTaskParams,
    IntentName.COMPLETE_TASK: CompleteTaskParams,
    IntentName.DELETE_TASK: DeleteTaskParams,
    IntentName.CREATE_EVENT: CreateEventParams,
    IntentName.UPDATE_EVENT: UpdateEventParams,
    IntentName.CANCEL_EVENT: CancelEventParams,
    IntentName.CREATE_PROJECT: CreateProjectParams,
    IntentName.CREATE_CONTACT: CreateContactParams,
    IntentName.CREATE_DEAL: CreateDealParams,
    IntentName.SCHEDULE_MEETING_WITH: ScheduleMeetingParams,
    IntentName.CHECK_WORKLOAD: EmptyParams,
    IntentName.CHECK_AVAILABILITY: MemberParams,
    IntentName.ASSIGN_TASK: AssignTaskParams,
    IntentName.GET_TEAM_TASKS: MemberParams,
    IntentName.DAILY_SUMMARY: EmptyParams,
    IntentName.TASK_SUMMARY: EmptyParams,
    IntentName.MEETING_SUMMARY: EmptyParams,
    IntentName.DEAL_SUMMARY: EmptyParams,
    IntentName.GREETING: EmptyParams,
    IntentName.GENERAL_CHAT: EmptyParams,
}


def parse_params(name: IntentName, params: dict[str, Any] | None) -> IntentParams:
    model = PARAMS_BY_INTENT.get(name, EmptyParams)
    return model.model_validate(params or {})


def first_missing(name: IntentName, params: dict[str, Any] | None) -> tuple[str | None, str] | None:
    """Return `(field, question)` for the first absent required field, if any."""
    try:
        parsed = parse_params(name, params)
    except ValidationError as exc:
        logger.warning("intent params failed validation intent=%s error=%s", name.value, exc)
        return None
    return parsed.missing()


def _alias(model: type[BaseModel], field_name: str) -> str:
    field = model.model_fields.get(field_name)
    if field is not None and field.alias:
        return field.alias
    return to_camel(field_name)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def _parse_minutes(value: Any) -> Any:
    if value is None or isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = re.search(r"\d+", str(value))
    if not match:
        return None
    minutes = int(match.group(0))
    if re.search(r"\bhours?\b|\bhr", str(value).lower()):
        minutes *= 60
    return minutes


def _parse_amount(value: Any) -> Any:
    if value is None or isinstance(value, (int, float)):
        return value
    text = str(value).lower().replace(",", "").replace("$", "").strip()
    match = re.match(r"(\d+(?:\.\d+)?)\s*(k|m)?", text)
    if not match:
        return None
    amount = float(match.group(1))
    if match.group(2) == "k":
        amount *= 1_000
    elif match.group(2) == "m":
        amount *= 1_000_000
    return amount


def _parse_name_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item or "").strip()]
    return []
