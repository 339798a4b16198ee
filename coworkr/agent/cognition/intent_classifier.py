from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, Sequence

from coworkr.agent.cognition.datetime_resolver import format_clock, format_short_date
from coworkr.agent.cognition.intent_params import first_missing
from coworkr.agent.cognition.intent_types import Intent, IntentName, general_chat
from coworkr.agent.cognition.prompts import (
    CLASSIFIER_SYSTEM_PROMPT,
    CLASSIFIER_USER_TEMPLATE,
    render_prompt_template,
)
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.context.workload import member_workload
from coworkr.agent.session.history import ConversationTurn, render_turns
from coworkr.config.settings import get_llm_timeout_seconds

logger = logging.getLogger(__name__)

PENDING_TASKS_IN_PROMPT = 5
EVENTS_IN_PROMPT = 10
HISTORY_TURNS_IN_PROMPT = 6


class IntentClassifier:
    """Maps one utterance to a closed-set intent with a parameter bag.

    Any failure of the language model (error, timeout, non-JSON or unknown
    intent name) degrades to GENERAL_CHAT with empty params.
    """

    def __init__(self, llm_client: Any, *, timeout_seconds: float | None = None) -> None:
        self._llm = llm_client
        self._timeout = timeout_seconds if timeout_seconds is not None else get_llm_timeout_seconds()

    async def classify(
        self,
        utterance: str,
        context: ContextSnapshot,
        history: Sequence[ConversationTurn],
    ) -> Intent:
        user_prompt = build_classifier_prompt(utterance, context, history)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._llm.complete, CLASSIFIER_SYSTEM_PROMPT, user_prompt),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("intent classification timed out after %ss", self._timeout)
            return general_chat()
        except Exception as exc:
            logger.warning("intent classification failed: %s", exc)
            return general_chat()
        return interpret_reply(raw)


def interpret_reply(raw: Any) -> Intent:
    payload = _parse_payload(raw)
    if payload is None:
        logger.warning("intent classifier returned non-JSON output")
        return general_chat()
    name = IntentName.parse(payload.get("intent") or payload.get("action"))
    if name is None:
        logger.warning("intent classifier returned unknown intent=%s", payload.get("intent"))
        return general_chat()
    params = payload.get("params")
    if not isinstance(params, dict):
        params = {}
    return validate_intent(Intent(name=name, params=params), suggested_question=payload.get("needsMoreInfo"))


def validate_intent(intent: Intent, *, suggested_question: Any = None) -> Intent:
    """Attach the clarifying question for the first absent required field.

    A question suggested by the model is kept only when a field is really
    missing; otherwise the intent is treated as ready.
    """
    missing = first_missing(intent.name, intent.params)
    if missing is None:
        return intent.with_params(intent.params)
    field, question = missing
    if isinstance(suggested_question, str) and suggested_question.strip():
        question = suggested_question.strip()
    return Intent(
        name=intent.name,
        params=dict(intent.params),
        needs_more_info=question,
        missing_field=field,
    )


def build_classifier_prompt(
    utterance: str,
    context: ContextSnapshot,
    history: Sequence[ConversationTurn],
) -> str:
    now = context.now
    pending = [f'"{task.get("title")}"' for task in context.pending_tasks[:PENDING_TASKS_IN_PROMPT]]
    events = []
    for event in context.upcoming_events[:EVENTS_IN_PROMPT]:
        start = context.start_of(event)
        when = f"{format_short_date(start)} {format_clock(start)}" if start else "TBD"
        events.append(f'"{event.get("title")}" at {when}')
    members = []
    for member in context.team_members:
        role = member.get("title") or member.get("role") or "member"
        workload = member_workload(member)
        members.append(
            f"{member.get('firstName', '')} {member.get('lastName', '')} ({role}, {workload['openTasks']} open tasks)".strip()
        )
    return render_prompt_template(
        CLASSIFIER_USER_TEMPLATE,
        {
            "today_iso": now.date().isoformat(),
            "tomorrow_iso": (now + timedelta(days=1)).date().isoformat(),
            "current_date": context.current_date,
            "current_time": context.current_time,
            "pending_tasks": ", ".join(pending) or "None",
            "events": "; ".join(events) or "None",
            "team_members": ", ".join(members) or "None",
            "project_count": len(context.projects),
            "contact_count": len(context.contacts),
            "deal_count": len(context.deals),
            "history": render_turns(list(history), limit=HISTORY_TURNS_IN_PROMPT) or "(Start of conversation)",
            "utterance": utterance,
            "intent_names": "|".join(name.value for name in IntentName),
        },
    )


def _parse_payload(raw: Any) -> dict[str, Any] | None:
    if isinstance(raw, dict):
        return raw
    candidate = str(raw or "").strip()
    if not candidate:
        return None
    if candidate.startswith("```"):
        candidate = candidate.strip("`").strip()
        if candidate.lower().startswith("json"):
            candidate = candidate[4:].strip()
    parsed = _loads(candidate)
    if parsed is None:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start >= 0 and end > start:
            parsed = _loads(candidate[start : end + 1])
    return parsed if isinstance(parsed, dict) else None


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None
