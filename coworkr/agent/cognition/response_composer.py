from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Sequence

from pydantic import ValidationError

from coworkr.agent.actions.base import ActionOutcome
from coworkr.agent.actions.records import describe_records, format_money
from coworkr.agent.cognition.datetime_resolver import format_clock, format_short_date, parse_iso
from coworkr.agent.cognition.intent_params import parse_params
from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.cognition.prompts import (
    COMPOSER_SYSTEM_PROMPT,
    COMPOSER_USER_TEMPLATE,
    render_prompt_template,
)
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.context.workload import member_workload
from coworkr.agent.session.history import ConversationTurn, render_turns
from coworkr.config.settings import get_llm_timeout_seconds

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I'm here to help! What can I do for you?"
HISTORY_TURNS_IN_PROMPT = 4
CLOSED_TASK_STATUSES = frozenset({"done", "completed"})
CLOSED_DEAL_STAGES = frozenset({"won", "lost", "closed"})

_EMPHASIS = re.compile(r"\*+|`+|^#+\s*", re.MULTILINE)
_WRAPPING_QUOTES = re.compile(r'^["“”\']+|["“”\']+$')
_WHITESPACE = re.compile(r"\s+")


class ResponseComposer:
    """Writes the spoken reply from the snapshot and the action outcome."""

    def __init__(self, llm_client: Any, *, timeout_seconds: float | None = None) -> None:
        self._llm = llm_client
        self._timeout = timeout_seconds if timeout_seconds is not None else get_llm_timeout_seconds()

    async def compose(
        self,
        utterance: str,
        context: ContextSnapshot,
        intent: Intent,
        outcome: ActionOutcome | None,
        history: Sequence[ConversationTurn],
    ) -> str:
        user_prompt = build_composer_prompt(utterance, context, intent, outcome, history)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._llm.complete, COMPOSER_SYSTEM_PROMPT, user_prompt),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("response composition timed out after %ss", self._timeout)
            return FALLBACK_REPLY
        except Exception as exc:
            logger.warning("response composition failed: %s", exc)
            return FALLBACK_REPLY
        text = sanitize_reply(raw)
        return text or FALLBACK_REPLY


def sanitize_reply(raw: Any) -> str:
    """Make a model reply safe to speak: no markup, no wrapping quotes, one line."""
    text = str(raw or "")
    text = _EMPHASIS.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return _WRAPPING_QUOTES.sub("", text).strip()


def build_composer_prompt(
    utterance: str,
    context: ContextSnapshot,
    intent: Intent,
    outcome: ActionOutcome | None,
    history: Sequence[ConversationTurn],
) -> str:
    tasks = list(context.tasks)
    open_tasks = [task for task in tasks if _status(task) not in CLOSED_TASK_STATUSES]
    completed = [task for task in tasks if _status(task) in CLOSED_TASK_STATUSES]
    due_today = []
    for task in open_tasks:
        due = parse_iso(task.get("dueDate"), context.now.tzinfo)
        if due is not None and due.date() == context.now.date():
            due_today.append(task)
    deals = list(context.deals)
    open_deals = [deal for deal in deals if str(deal.get("stage") or "").lower() not in CLOSED_DEAL_STAGES]
    won_deals = [deal for deal in deals if str(deal.get("stage") or "").lower() == "won"]

    query_label, query_text = _query_results(intent, outcome, context)
    return render_prompt_template(
        COMPOSER_USER_TEMPLATE,
        {
            "current_date": context.current_date,
            "current_time": context.current_time,
            "open_tasks": open_tasks,
            "open_tasks_text": _tasks_text(open_tasks, context),
            "due_today": due_today,
            "due_today_text": _tasks_text(due_today, context),
            "completed_tasks": completed,
            "completed_tasks_text": ", ".join(f'"{task.get("title")}"' for task in completed) or "None",
            "projects": list(context.projects),
            "projects_text": "; ".join(f'"{p.get("name")}" ({p.get("status")})' for p in context.projects)
            or "No projects",
            "open_deals": open_deals,
            "open_deals_text": _deals_text(open_deals),
            "won_deals": won_deals,
            "won_deals_text": _deals_text(won_deals),
            "contacts": list(context.contacts),
            "contacts_text": _contacts_text(context.contacts),
            "accounts": list(context.accounts),
            "accounts_text": "; ".join(
                f'"{a.get("name")}" ({a.get("industry") or "no industry"})' for a in context.accounts
            )
            or "No accounts",
            "events_text": _events_text(context),
            "team_members": list(context.team_members),
            "team_text": _team_text(context.team_members),
            "query_label": query_label,
            "query_results_text": query_text,
            "history": render_turns(list(history), limit=HISTORY_TURNS_IN_PROMPT),
            "utterance": utterance,
            "action_result": _action_result(outcome),
        },
    )


def _status(task: dict[str, Any]) -> str:
    return str(task.get("status") or "").lower()


def _tasks_text(tasks: list[dict[str, Any]], context: ContextSnapshot) -> str:
    if not tasks:
        return "No tasks"
    rendered = []
    for task in tasks:
        due = parse_iso(task.get("dueDate"), context.now.tzinfo)
        due_text = format_short_date(due) if due is not None else "no due date"
        rendered.append(
            f'"{task.get("title")}" ({task.get("status") or "pending"}, '
            f'{task.get("priority") or "medium"} priority, due: {due_text})'
        )
    return "; ".join(rendered)


def _deals_text(deals: list[dict[str, Any]]) -> str:
    if not deals:
        return "No deals"
    return "; ".join(f'"{d.get("name")}" ({format_money(d.get("value"))}, stage: {d.get("stage")})' for d in deals)


def _contacts_text(contacts: Sequence[dict[str, Any]]) -> str:
    if not contacts:
        return "No contacts"
    rendered = []
    for contact in contacts:
        name = f"{contact.get('firstName') or ''} {contact.get('lastName') or ''}".strip() or "Unknown"
        rendered.append(f"{name} ({contact.get('company') or 'no company'}, {contact.get('email') or 'no email'})")
    return "; ".join(rendered)


def _events_text(context: ContextSnapshot) -> str:
    if not context.events:
        return "No upcoming events"
    rendered = []
    for event in context.events:
        start = context.start_of(event)
        when = f"{format_short_date(start)} {format_clock(start)}" if start is not None else "TBD"
        rendered.append(f'"{event.get("title")}" ({when})')
    return "; ".join(rendered)


def _team_text(members: Sequence[dict[str, Any]]) -> str:
    rendered = []
    for member in members:
        workload = member_workload(member)
        rendered.append(
            f"{member.get('firstName', '')} {member.get('lastName', '')} "
            f"({member.get('title') or member.get('role') or 'member'}) - "
            f"{workload['openTasks']} open tasks, {workload['highPriorityTasks']} high priority"
        )
    return "; ".join(rendered) or "None"


def _query_results(intent: Intent, outcome: ActionOutcome | None, context: ContextSnapshot) -> tuple[str, str]:
    if intent.name is not IntentName.QUERY or outcome is None or not isinstance(outcome.data, list):
        return "", ""
    try:
        data_type = parse_params(IntentName.QUERY, intent.params).data_type
    except ValidationError:
        data_type = None
    label = data_type or "records"
    if not outcome.data:
        return label, f"No {label}"
    return label, "; ".join(describe_records(label, outcome.data, context))


def _action_result(outcome: ActionOutcome | None) -> str:
    if outcome is None:
        return ""
    if outcome.success:
        detail = outcome.message or json.dumps(outcome.data, default=str)
        return f"SUCCESS - {detail}"
    return f"FAILED - {outcome.error or outcome.message or 'Unknown error'}"
