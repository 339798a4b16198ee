from __future__ import annotations

from typing import Any, Callable

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, iso, join_names, plural
from coworkr.agent.cognition.datetime_resolver import format_clock, format_short_date, parse_iso
from coworkr.agent.cognition.intent_params import (
    CreateContactParams,
    CreateDealParams,
    CreateProjectParams,
    QueryParams,
)
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import ContextSnapshot

GENERAL_HELP = "I can help you manage tasks, schedule meetings, check your deals, and more. What would you like to do?"

# Data types a QUERY may read, with the filter applied when none is given.
QUERY_DEFAULTS: dict[str, dict[str, Any]] = {
    "tasks": {"status": "pending", "limit": 20},
    "events": {"upcoming": "true", "limit": 10},
    "projects": {"limit": 20},
    "contacts": {"limit": 20},
    "deals": {"limit": 20},
    "accounts": {"limit": 20},
}

_ALIASES = {
    "task": "tasks",
    "todo": "tasks",
    "todos": "tasks",
    "event": "events",
    "meeting": "events",
    "meetings": "events",
    "calendar": "events",
    "project": "projects",
    "contact": "contacts",
    "deal": "deals",
    "pipeline": "deals",
    "account": "accounts",
    "companies": "accounts",
}


class CreateProject(ActionHandler):
    intent = IntentName.CREATE_PROJECT

    def handle(self, params: CreateProjectParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        fields: dict[str, Any] = {
            "name": params.name,
            "description": params.description or "",
            "status": (params.status or "open").lower(),
            "priority": (params.priority or "medium").lower(),
        }
        if params.due_date:
            fields["dueDate"] = iso(self.when(context, instant=params.due_date))
        project = self.store.create(caller_id, "projects", fields)
        return ActionOutcome.ok(f'Created project "{params.name}".', data=project)


class CreateContact(ActionHandler):
    intent = IntentName.CREATE_CONTACT

    def handle(self, params: CreateContactParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        fields = {
            key: value
            for key, value in {
                "firstName": params.first_name,
                "lastName": params.last_name,
                "email": params.email,
                "phone": params.phone,
                "company": params.company,
            }.items()
            if value
        }
        contact = self.store.create(caller_id, "contacts", fields)
        name = " ".join(part for part in (params.first_name, params.last_name) if part) or params.email
        message = f"Added {name} to your contacts"
        if params.company:
            message += f" at {params.company}"
        return ActionOutcome.ok(message + ".", data=contact)


class CreateDeal(ActionHandler):
    intent = IntentName.CREATE_DEAL

    def handle(self, params: CreateDealParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        stage = (params.stage or "lead").lower()
        fields: dict[str, Any] = {"name": params.name, "value": params.value or 0, "stage": stage}
        if params.contact_id:
            fields["contactId"] = params.contact_id
        deal = self.store.create(caller_id, "deals", fields)
        message = f'Created deal "{params.name}"'
        if params.value:
            message += f" worth {format_money(params.value)}"
        return ActionOutcome.ok(f"{message} in the {stage} stage.", data=deal)


class Query(ActionHandler):
    intent = IntentName.QUERY

    def handle(self, params: QueryParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        if not params.data_type:
            return ActionOutcome.ok(GENERAL_HELP)
        data_type = _ALIASES.get(params.data_type, params.data_type)
        if data_type not in QUERY_DEFAULTS:
            return ActionOutcome.failed(f"I can't look up {params.data_type} yet.")
        filters = dict(params.filters) if params.filters else dict(QUERY_DEFAULTS[data_type])
        records = self.read(caller_id, data_type, filters)
        if not records:
            return ActionOutcome.ok(f"You don't have any {_empty_label(data_type, filters)} yet.", data=[])
        items = describe_records(data_type, records, context)
        label = _empty_label(data_type, filters)
        return ActionOutcome.ok(
            f"You have {plural(len(records), label.rstrip('s'))}: {join_names(items)}.",
            data=records,
        )


def describe_records(data_type: str, records: Any, context: ContextSnapshot) -> list[str]:
    describe = _DESCRIBERS.get(_ALIASES.get(data_type, data_type), _account)
    return [describe(record, context) for record in records if isinstance(record, dict)]


def format_money(value: Any) -> str:
    amount = float(value or 0)
    if amount.is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


def _empty_label(data_type: str, filters: dict[str, Any]) -> str:
    status = str(filters.get("status") or "").lower()
    if data_type == "tasks" and status:
        return f"{status.replace('_', ' ')} tasks"
    if data_type == "events" and str(filters.get("upcoming")).lower() == "true":
        return "upcoming events"
    return data_type


def _task(record: dict[str, Any], context: ContextSnapshot) -> str:
    text = str(record.get("title") or "Untitled")
    details = [str(record.get("priority") or "medium") + " priority"]
    due = parse_iso(record.get("dueDate"), context.now.tzinfo)
    if due is not None:
        details.append(f"due {format_short_date(due)}")
    return f"{text} ({', '.join(details)})"


def _event(record: dict[str, Any], context: ContextSnapshot) -> str:
    start = context.start_of(record)
    if start is None:
        return str(record.get("title") or "Untitled")
    return f"{record.get('title')} on {format_short_date(start)} at {format_clock(start)}"


def _project(record: dict[str, Any], context: ContextSnapshot) -> str:
    return f"{record.get('name')} ({record.get('status') or 'open'})"


def _contact(record: dict[str, Any], context: ContextSnapshot) -> str:
    name = f"{record.get('firstName') or ''} {record.get('lastName') or ''}".strip() or str(record.get("email"))
    return f"{name} from {record['company']}" if record.get("company") else name


def _deal(record: dict[str, Any], context: ContextSnapshot) -> str:
    return f"{record.get('name')} ({format_money(record.get('value'))}, {record.get('stage') or 'lead'})"


def _account(record: dict[str, Any], context: ContextSnapshot) -> str:
    return str(record.get("name") or "Unnamed account")


_DESCRIBERS: dict[str, Callable[[dict[str, Any], ContextSnapshot], str]] = {
    "tasks": _task,
    "events": _event,
    "projects": _project,
    "contacts": _contact,
    "deals": _deal,
    "accounts": _account,
}


HANDLERS = [CreateProject, CreateContact, CreateDeal, Query]
