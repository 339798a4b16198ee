from __future__ import annotations

from datetime import timedelta
from typing import Any

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, join_names, plural
from coworkr.agent.actions.records import GENERAL_HELP, format_money
from coworkr.agent.cognition.datetime_resolver import format_clock
from coworkr.agent.cognition.intent_params import EmptyParams
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.context.workload import is_high_priority


def _timed(events: Any, context: ContextSnapshot) -> list[str]:
    return [f"{event.get('title')} at {format_clock(context.start_of(event))}" for event in events]


def _today(context: ContextSnapshot) -> tuple[dict[str, Any], ...]:
    todays = context.events_on(context.now)
    return tuple(sorted(todays, key=lambda event: context.start_of(event)))


class DailySummary(ActionHandler):
    intent = IntentName.DAILY_SUMMARY

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        todays = _today(context)
        pending = context.pending_tasks
        high = [task for task in pending if is_high_priority(task)]

        parts = [f"Today is {context.current_date}."]
        if todays:
            parts.append(f"You have {plural(len(todays), 'meeting')} today.")
            if len(todays) <= 2:
                parts.append(f"{join_names(_timed(todays, context))}.")
        else:
            parts.append("No meetings today.")
        if pending:
            line = f"You have {plural(len(pending), 'pending task')}"
            if high:
                line += f", {len(high)} high priority"
            parts.append(line + ".")
        else:
            parts.append("No pending tasks.")
        return ActionOutcome.ok(" ".join(parts), data={"meetings": len(todays), "pendingTasks": len(pending)})


class TaskSummary(ActionHandler):
    intent = IntentName.TASK_SUMMARY

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        pending = context.pending_tasks
        if not pending:
            return ActionOutcome.ok("You don't have any pending tasks.", data=[])
        counts: dict[str, int] = {}
        for task in pending:
            priority = str(task.get("priority") or "medium").lower()
            counts[priority] = counts.get(priority, 0) + 1
        breakdown = [f"{counts[level]} {level} priority" for level in ("urgent", "high", "medium", "low") if counts.get(level)]
        message = f"You have {plural(len(pending), 'pending task')}: {', '.join(breakdown)}."
        high = [str(task.get("title")) for task in pending if is_high_priority(task)]
        if high:
            message += f" Top priority: {join_names(high[:2])}."
        return ActionOutcome.ok(message, data=counts)


class MeetingSummary(ActionHandler):
    intent = IntentName.MEETING_SUMMARY

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        upcoming = context.upcoming_events
        todays = _today(context)
        if not upcoming and not todays:
            return ActionOutcome.ok("You don't have any upcoming meetings.", data=[])
        week_end = context.now + timedelta(days=7)
        this_week = [event for event in upcoming if context.start_of(event) <= week_end]

        parts = []
        if todays:
            parts.append(f"Today you have {plural(len(todays), 'meeting')}: {', '.join(_timed(todays[:3], context))}.")
        else:
            parts.append("No meetings today.")
        if len(this_week) > len(todays):
            parts.append(f"This week you have {plural(len(this_week), 'meeting')} total.")
        return ActionOutcome.ok(" ".join(parts), data={"today": len(todays), "thisWeek": len(this_week)})


class DealSummary(ActionHandler):
    intent = IntentName.DEAL_SUMMARY

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        deals = context.deals
        if not deals:
            return ActionOutcome.ok("You don't have any deals in your pipeline.", data=[])
        total = sum(_amount(deal) for deal in deals)
        stages: dict[str, int] = {}
        for deal in deals:
            stage = str(deal.get("stage") or "unknown")
            stages[stage] = stages.get(stage, 0) + 1
        by_stage = ", ".join(f"{count} in {stage}" for stage, count in stages.items())
        return ActionOutcome.ok(
            f"You have {plural(len(deals), 'deal')} worth {format_money(total)}. {by_stage}.",
            data={"total": total, "stages": stages},
        )


class Greeting(ActionHandler):
    intent = IntentName.GREETING

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        hour = context.now.hour
        if hour < 12:
            greeting = "Good morning"
        elif hour < 17:
            greeting = "Good afternoon"
        else:
            greeting = "Good evening"
        parts = [f"{greeting}!"]
        todays = _today(context)
        if todays:
            parts.append(f"You have {plural(len(todays), 'meeting')} today.")
        pending = context.pending_tasks
        high = sum(1 for task in pending if is_high_priority(task))
        if high:
            parts.append(f"{plural(high, 'high priority task')} need your attention.")
        elif pending:
            parts.append(f"{plural(len(pending), 'task')} on your list.")
        parts.append("How can I help you?")
        return ActionOutcome.ok(" ".join(parts))


class GeneralChat(ActionHandler):
    intent = IntentName.GENERAL_CHAT

    def handle(self, params: EmptyParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        return ActionOutcome.ok(GENERAL_HELP)


def _amount(deal: dict[str, Any]) -> float:
    try:
        return float(deal.get("value") or 0)
    except (TypeError, ValueError):
        return 0.0


HANDLERS = [DailySummary, TaskSummary, MeetingSummary, DealSummary, Greeting, GeneralChat]
