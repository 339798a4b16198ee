from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, iso
from coworkr.agent.cognition.datetime_resolver import format_short_date
from coworkr.agent.cognition.entity_matcher import match_task
from coworkr.agent.cognition.intent_params import (
    CompleteTaskParams,
    CreateTaskParams,
    DeleteTaskParams,
    UpdateTaskParams,
)
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import TASK_LIMIT, ContextSnapshot

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = "medium"
DONE_STATUSES = frozenset({"done", "completed", "complete"})


class CreateTask(ActionHandler):
    intent = IntentName.CREATE_TASK

    def handle(self, params: CreateTaskParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        priority = (params.priority or DEFAULT_PRIORITY).lower()
        fields: dict[str, Any] = {
            "title": params.title,
            "description": params.description or "",
            "status": "pending",
            "priority": priority,
        }
        due = None
        if params.due_date:
            due = self.when(context, instant=params.due_date)
            fields["dueDate"] = iso(due)
        if params.project_id:
            fields["projectId"] = params.project_id
        task = self.store.create(caller_id, "tasks", fields)
        message = f'Created task "{params.title}"'
        if priority == "high":
            message += " with high priority"
        if due is not None:
            message += f", due {format_short_date(due)}"
        return ActionOutcome.ok(message + ".", data=task)


class _ExistingTaskHandler(ActionHandler):
    """Shared lookup over every task the caller has, done ones included."""

    def find(self, params: Any, caller_id: str, context: ContextSnapshot) -> dict[str, Any] | None:
        task = _pick(params, list(context.tasks) or self.read(caller_id, "tasks"))
        if task is None and len(context.tasks) >= TASK_LIMIT:
            # Snapshot reads are capped; retry over every task.
            task = _pick(params, self.read(caller_id, "tasks"))
        return task

    @staticmethod
    def not_found(params: Any) -> ActionOutcome:
        return ActionOutcome.failed(f'I couldn\'t find a task called "{params.task_title or params.task_id}".')


class UpdateTask(_ExistingTaskHandler):
    intent = IntentName.UPDATE_TASK

    def handle(self, params: UpdateTaskParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        task = self.find(params, caller_id, context)
        if task is None:
            return self.not_found(params)

        fields: dict[str, Any] = {}
        changes: list[str] = []
        if params.due_date:
            due = self.when(context, instant=params.due_date)
            fields["dueDate"] = iso(due)
            changes.append(f"due date to {format_short_date(due)}")
        if params.priority:
            fields["priority"] = params.priority.lower()
            changes.append(f"priority to {fields['priority']}")
        if params.status:
            status = params.status.lower()
            fields["status"] = status
            if status in DONE_STATUSES:
                fields["completedAt"] = _utc_now()
            changes.append(f"status to {status}")
        if params.new_title:
            fields["title"] = params.new_title
            changes.append(f'title to "{params.new_title}"')
        if params.description:
            fields["description"] = params.description
            changes.append("description")
        for key, value in (params.updates or {}).items():
            if key not in fields:
                fields[key] = value
                changes.append(f"{key} to {value}")
        if not fields:
            return ActionOutcome.ask(UpdateTaskParams.CHANGES_QUESTION)

        updated = self.store.update(caller_id, "tasks", str(task["id"]), fields)
        return ActionOutcome.ok(f'Updated "{task.get("title")}": {", ".join(changes)}.', data=updated)


class CompleteTask(_ExistingTaskHandler):
    intent = IntentName.COMPLETE_TASK

    def handle(self, params: CompleteTaskParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        task = self.find(params, caller_id, context)
        if task is None:
            return self.not_found(params)
        updated = self.store.update(
            caller_id,
            "tasks",
            str(task["id"]),
            {"status": "done", "completedAt": _utc_now()},
        )
        return ActionOutcome.ok(f'Done! Marked "{task.get("title")}" as complete.', data=updated)


class DeleteTask(_ExistingTaskHandler):
    intent = IntentName.DELETE_TASK

    def handle(self, params: DeleteTaskParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        task = self.find(params, caller_id, context)
        if task is None:
            return self.not_found(params)
        self.store.delete(caller_id, "tasks", str(task["id"]))
        return ActionOutcome.ok(f'Deleted task "{task.get("title")}".', data={"id": task["id"]})


def _pick(params: Any, tasks: list[dict[str, Any]]) -> dict[str, Any] | None:
    if params.task_id:
        return next((task for task in tasks if str(task.get("id")) == str(params.task_id)), None)
    result = match_task(params.task_title, tasks)
    return result.value if result.ok else None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


HANDLERS = [CreateTask, UpdateTask, CompleteTask, DeleteTask]
