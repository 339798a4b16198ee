from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, iso, join_names, plural
from coworkr.agent.actions.events import CalendarHandler
from coworkr.agent.actions.tasks import DONE_STATUSES
from coworkr.agent.cognition.datetime_resolver import format_clock, format_short_date, parse_iso
from coworkr.agent.cognition.entity_matcher import MatchResult, match_member, member_full_name
from coworkr.agent.cognition.intent_params import AssignTaskParams, EmptyParams, MemberParams, ScheduleMeetingParams
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.context.workload import is_high_priority, member_workload
from coworkr.agent.services.errors import RecordStoreError

logger = logging.getLogger(__name__)

DEFAULT_MEETING_MINUTES = 30
MEMBER_EVENT_LIMIT = 20
MEMBER_TASK_LIMIT = 20
NO_TEAM_MESSAGE = "No team members found."
UNREADABLE_NAME_MESSAGE = "I couldn't understand the team member's name."


def resolve_member(name: str | None, context: ContextSnapshot) -> MatchResult:
    return match_member(name, context.team_members)


def member_not_resolved(name: str | None, result: MatchResult) -> ActionOutcome:
    if result.error == "query_too_short":
        return ActionOutcome.failed(UNREADABLE_NAME_MESSAGE)
    return ActionOutcome.failed(f"Could not find team member: {name}.")


def availability_band(open_tasks: int, labels: tuple[str, str, str]) -> str:
    if open_tasks <= 2:
        return labels[0]
    if open_tasks <= 4:
        return labels[1]
    return labels[2]


class ScheduleMeetingWith(CalendarHandler):
    intent = IntentName.SCHEDULE_MEETING_WITH

    def handle(self, params: ScheduleMeetingParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        attendees: list[dict[str, Any]] = []
        for name in params.names():
            result = resolve_member(name, context)
            if not result.ok:
                return member_not_resolved(name, result)
            if result.value not in attendees:
                attendees.append(result.value)

        start = self.when(context, instant=params.start_time, date_expr=params.date, time_expr=params.time)
        end = parse_iso(params.end_time, context.now.tzinfo) if params.end_time else None
        if end is None or end <= start:
            end = start + timedelta(minutes=params.duration or DEFAULT_MEETING_MINUTES)
        names = join_names([member_full_name(member) for member in attendees])
        payload = {
            "title": params.title,
            "description": params.description or f"Meeting with {names}",
            "location": params.location or "",
            "startTime": iso(start),
            "endTime": iso(end),
            "attendees": [member.get("email") for member in attendees if member.get("email")],
        }
        event = self.create_event(caller_id, payload)
        for member in attendees:
            self._mirror(str(member.get("id") or ""), caller_id, payload)
        return ActionOutcome.ok(
            f'Scheduled "{params.title}" with {names} on {format_short_date(start)} at {format_clock(start)}.',
            data=event,
        )

    def _mirror(self, member_id: str, caller_id: str, payload: dict[str, Any]) -> None:
        if not member_id or member_id == caller_id:
            return
        try:
            self.store.create(member_id, "events", {**payload, "organizerId": caller_id})
        except RecordStoreError as exc:
            logger.warning("meeting mirror failed member_id=%s error=%s", member_id, exc)


class AssignTask(ActionHandler):
    intent = IntentName.ASSIGN_TASK

    def handle(self, params: AssignTaskParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        result = resolve_member(params.assignee_name, context)
        if not result.ok:
            return member_not_resolved(params.assignee_name, result)
        assignee = result.value
        fields: dict[str, Any] = {
            "title": params.title,
            "description": params.description or "",
            "status": "pending",
            "priority": (params.priority or "medium").lower(),
            "assignedTo": assignee.get("id"),
            "assignedBy": caller_id,
        }
        if params.due_date:
            fields["dueDate"] = iso(self.when(context, instant=params.due_date))
        task = self.store.create(str(assignee.get("id")), "tasks", fields)
        return ActionOutcome.ok(
            f'Created task "{params.title}" and assigned it to {member_full_name(assignee)}.',
            data=task,
        )


class CheckWorkload(ActionHandler):
    intent = IntentName.CHECK_WORKLOAD

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        if not context.team_members:
            return ActionOutcome.ok(NO_TEAM_MESSAGE, data=[])
        ranked = sorted(context.team_members, key=lambda member: member_workload(member)["score"])
        least, most = ranked[0], ranked[-1]
        breakdown = ", ".join(
            f"{member_full_name(member)} has {plural(member_workload(member)['openTasks'], 'task')}"
            for member in ranked
        )
        message = (
            f"{member_full_name(least)} is the least busy with "
            f"{plural(member_workload(least)['openTasks'], 'open task')}. "
            f"{member_full_name(most)} is the most busy with "
            f"{plural(member_workload(most)['openTasks'], 'task')}. "
            f"Team workload: {breakdown}."
        )
        return ActionOutcome.ok(
            message,
            data={
                "ranking": [
                    {"id": member.get("id"), "name": member_full_name(member), **member_workload(member)}
                    for member in ranked
                ],
                "leastBusy": member_full_name(least),
                "mostBusy": member_full_name(most),
            },
        )


class CheckAvailability(ActionHandler):
    intent = IntentName.CHECK_AVAILABILITY

    def handle(self, params: MemberParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        if not params.member_name:
            if not context.team_members:
                return ActionOutcome.ok(NO_TEAM_MESSAGE, data=[])
            lines = []
            for member in context.team_members:
                open_tasks = member_workload(member)["openTasks"]
                band = availability_band(open_tasks, ("available", "moderately busy", "very busy"))
                lines.append(f"{member.get('firstName')} is {band} with {plural(open_tasks, 'task')}")
            return ActionOutcome.ok(f"Team availability: {'. '.join(lines)}.", data=list(context.team_members))

        result = resolve_member(params.member_name, context)
        if not result.ok:
            return member_not_resolved(params.member_name, result)
        member = result.value
        events = self.read(str(member.get("id")), "events", {"limit": MEMBER_EVENT_LIMIT})
        todays = []
        for event in events:
            start = parse_iso(event.get("startTime"), context.now.tzinfo)
            if start is not None and start.date() == context.now.date():
                todays.append(event)
        open_tasks = member_workload(member)["openTasks"]
        band = availability_band(open_tasks, ("pretty free", "moderately busy", "quite busy"))
        message = f"{member_full_name(member)} is {band} with {plural(open_tasks, 'task')}."
        if todays:
            message += f" They have {plural(len(todays), 'meeting')} today."
        else:
            message += " No meetings scheduled today."
        return ActionOutcome.ok(message, data={"member": member, "events": todays})


class GetTeamTasks(ActionHandler):
    intent = IntentName.GET_TEAM_TASKS

    def handle(self, params: MemberParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        if not params.member_name:
            if not context.team_members:
                return ActionOutcome.ok(NO_TEAM_MESSAGE, data=[])
            overview = []
            lines = []
            for member in context.team_members:
                workload = member_workload(member)
                overview.append(
                    {
                        "name": member_full_name(member),
                        "openTasks": workload["openTasks"],
                        "highPriority": workload["highPriorityTasks"],
                    }
                )
                line = f"{member_full_name(member)} has {plural(workload['openTasks'], 'open task')}"
                if workload["highPriorityTasks"]:
                    line += f" ({workload['highPriorityTasks']} high priority)"
                lines.append(line)
            return ActionOutcome.ok(f"Team tasks: {', '.join(lines)}.", data=overview)

        result = resolve_member(params.member_name, context)
        if not result.ok:
            return member_not_resolved(params.member_name, result)
        member = result.value
        tasks = [
            task
            for task in self.read(str(member.get("id")), "tasks", {"limit": MEMBER_TASK_LIMIT})
            if str(task.get("status") or "").lower() not in DONE_STATUSES
        ]
        name = member_full_name(member)
        if not tasks:
            return ActionOutcome.ok(f"{name} doesn't have any open tasks.", data={"memberName": name, "tasks": []})
        titles = [
            f"{task.get('title')}{' (high priority)' if is_high_priority(task) else ''}" for task in tasks
        ]
        return ActionOutcome.ok(
            f"{name} has {plural(len(tasks), 'open task')}: {join_names(titles)}.",
            data={"memberName": name, "tasks": tasks, "taskCount": len(tasks)},
        )


HANDLERS = [ScheduleMeetingWith, AssignTask, CheckWorkload, CheckAvailability, GetTeamTasks]
