from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class IntentName(str, Enum):
    QUERY = "QUERY"
    CREATE_TASK = "CREATE_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    COMPLETE_TASK = "COMPLETE_TASK"
    DELETE_TASK = "DELETE_TASK"
    CREATE_EVENT = "CREATE_EVENT"
    UPDATE_EVENT = "UPDATE_EVENT"
    CANCEL_EVENT = "CANCEL_EVENT"
    CREATE_PROJECT = "CREATE_PROJECT"
    CREATE_CONTACT = "CREATE_CONTACT"
    CREATE_DEAL = "CREATE_DEAL"
    SCHEDULE_MEETING_WITH = "SCHEDULE_MEETING_WITH"
    CHECK_WORKLOAD = "CHECK_WORKLOAD"
    CHECK_AVAILABILITY = "CHECK_AVAILABILITY"
    ASSIGN_TASK = "ASSIGN_TASK"
    GET_TEAM_TASKS = "GET_TEAM_TASKS"
    DAILY_SUMMARY = "DAILY_SUMMARY"
    TASK_SUMMARY = "TASK_SUMMARY"
    MEETING_SUMMARY = "MEETING_SUMMARY"
    DEAL_SUMMARY = "DEAL_SUMMARY"
    GREETING = "GREETING"
    GENERAL_CHAT = "GENERAL_CHAT"

    @classmethod
    def parse(cls, raw: Any) -> "IntentName | None":
        text = str(raw or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return None


# Free-form intents a short follow-up is allowed to replace.
FOLLOW_UP_INTENTS = frozenset({IntentName.GENERAL_CHAT, IntentName.QUERY})


@dataclass(frozen=True)
class Intent:
    name: IntentName
    params: dict[str, Any] = field(default_factory=dict)
    needs_more_info: str | None = None
    missing_field: str | None = None

    def with_params(self, params: dict[str, Any]) -> "Intent":
        return replace(self, params=dict(params), needs_more_info=None, missing_field=None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"intent": self.name.value, "params": dict(self.params)}
        if self.needs_more_info:
            payload["needsMoreInfo"] = self.needs_more_info
        return payload


def general_chat() -> Intent:
    return Intent(name=IntentName.GENERAL_CHAT)
