from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, iso
from coworkr.agent.cognition.datetime_resolver import format_clock, format_short_date, parse_iso
from coworkr.agent.cognition.entity_matcher import match_event
from coworkr.agent.cognition.intent_params import CancelEventParams, CreateEventParams, UpdateEventParams
from coworkr.agent.cognition.intent_types import IntentName
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.services.errors import CalendarUnavailable

logger = logging.getLogger(__name__)

DEFAULT_EVENT_MINUTES = 60
EXTERNAL = "external"
LOCAL = "local"
NOT_FOUND_MESSAGE = "Could not find the event to update. Please specify the event name or time more precisely."


class CalendarHandler(ActionHandler):
    def create_event(self, caller_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """External calendar first, local store when it is missing or fails."""
        calendar = self.services.calendar
        if calendar is not None:
            try:
                return {**calendar.create(caller_id, payload), "source": EXTERNAL}
            except CalendarUnavailable as exc:
                logger.info("external calendar create skipped user_id=%s reason=%s", caller_id, exc)
        return {**self.store.create(caller_id, "events", payload), "source": LOCAL}

    def update_event(self, caller_id: str, event: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
        if event.get("source") == EXTERNAL:
            return {**self._calendar().update(caller_id, str(event["id"]), fields), "source": EXTERNAL}
        return {**self.store.update(caller_id, "events", str(event["id"]), fields), "source": LOCAL}

    def delete_event(self, caller_id: str, event: dict[str, Any]) -> None:
        if event.get("source") == EXTERNAL:
            self._calendar().delete(caller_id, str(event["id"]))
        else:
            self.store.delete(caller_id, "events", str(event["id"]))

    def _calendar(self) -> Any:
        if self.services.calendar is None:
            raise CalendarUnavailable("calendar not connected")
        return self.services.calendar


class CreateEvent(CalendarHandler):
    intent = IntentName.CREATE_EVENT

    def handle(self, params: CreateEventParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        start = self.when(context, instant=params.start_time, date_expr=params.date, time_expr=params.time)
        end = parse_iso(params.end_time, context.now.tzinfo) if params.end_time else None
        if end is None or end <= start:
            end = start + timedelta(minutes=params.duration or DEFAULT_EVENT_MINUTES)
        payload = {
            "title": params.title,
            "description": params.description or "",
            "location": params.location or "",
            "startTime": iso(start),
            "endTime": iso(end),
            "attendees": list(params.attendees),
        }
        event = self.create_event(caller_id, payload)
        return ActionOutcome.ok(
            f'Created "{params.title}" on {format_short_date(start)} at {format_clock(start)}.',
            data=event,
        )


class UpdateEvent(CalendarHandler):
    intent = IntentName.UPDATE_EVENT

    def handle(self, params: UpdateEventParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        event = self.locate(params, context)
        if event is None:
            if params.event_title and not params.event_time:
                return ActionOutcome.failed(f'I couldn\'t find an event called "{params.event_title}".')
            return ActionOutcome.failed(NOT_FOUND_MESSAGE)

        fields: dict[str, Any] = dict(params.updates or {})
        changes: list[str] = []
        if params.date or params.time:
            start, end = self._reschedule(event, params, context)
            fields["startTime"] = iso(start)
            fields["endTime"] = iso(end)
            changes.append(f"rescheduled to {format_short_date(start)} at {format_clock(start)}")
        if params.new_title:
            fields["title"] = params.new_title
            changes.append(f'title to "{params.new_title}"')
        if params.location:
            fields["location"] = params.location
            changes.append(f'location to "{params.location}"')
        if params.description:
            fields["description"] = params.description
            changes.append("added description")
        if params.updates:
            changes.extend(f"{key} updated" for key in params.updates if key not in ("title", "startTime", "endTime"))
        if not fields:
            return ActionOutcome.ask(UpdateEventParams.CHANGES_QUESTION)

        updated = self.update_event(caller_id, event, fields)
        return ActionOutcome.ok(f'Updated "{event.get("title")}": {", ".join(changes) or "details"}.', data=updated)

    def locate(self, params: UpdateEventParams, context: ContextSnapshot) -> dict[str, Any] | None:
        events = list(context.events)
        if params.event_id:
            return next((event for event in events if str(event.get("id")) == str(params.event_id)), None)
        target = self._target_time(params.event_time, context)
        return find_event(
            events,
            title=params.event_title,
            target=target,
            today=context.now,
            new_title=params.new_title,
            start_of=context.start_of,
        )

    def _target_time(self, raw: str | None, context: ContextSnapshot) -> datetime | None:
        if not raw:
            return None
        parsed = parse_iso(raw, context.now.tzinfo)
        if parsed is not None:
            return parsed
        return self.resolve(None, raw, context)

    def _reschedule(
        self,
        event: dict[str, Any],
        params: UpdateEventParams,
        context: ContextSnapshot,
    ) -> tuple[datetime, datetime]:
        current_start = context.start_of(event) or context.now
        current_end = parse_iso(event.get("endTime"), context.now.tzinfo)
        duration = (
            current_end - current_start
            if current_end is not None and current_end > current_start
            else timedelta(minutes=DEFAULT_EVENT_MINUTES)
        )
        start = self.services.resolver.resolve(params.date, params.time, current_start)
        if not params.time:
            start = start.replace(hour=current_start.hour, minute=current_start.minute)
        return start, start + duration


def find_event(
    events: Iterable[dict[str, Any]],
    *,
    title: str | None,
    target: datetime | None,
    today: datetime,
    new_title: str | None,
    start_of: Any,
) -> dict[str, Any] | None:
    """Locate the event an update refers to.

    Passes, first hit wins: exact title, partial title, same day within an
    hour of `target`, today's event at `target`'s hour, and finally (only
    when renaming) today's event whose title is not already the new title.
    """
    events = list(events)
    needle = _norm(title)

    if needle:
        for event in events:
            if _norm(event.get("title")) == needle:
                return event
        for event in events:
            text = _norm(event.get("title"))
            if text and (needle in text or text in needle):
                return event

    if target is not None:
        for event in events:
            start = start_of(event)
            if start is not None and start.date() == target.date() and abs((start - target).total_seconds()) <= 3600:
                return event
        for event in events:
            start = start_of(event)
            if start is not None and start.date() == today.date() and start.hour == target.hour:
                return event

    if new_title:
        todays = [
            event
            for event in events
            if start_of(event) is not None
            and start_of(event).date() == today.date()
            and _norm(event.get("title")) != _norm(new_title)
        ]
        if needle:
            for event in todays:
                if needle in _norm(event.get("title")):
                    return event
        if todays:
            return todays[0]
    return None


class CancelEvent(CalendarHandler):
    intent = IntentName.CANCEL_EVENT

    def handle(self, params: CancelEventParams, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        event = None
        if params.event_id:
            event = next((item for item in context.events if str(item.get("id")) == str(params.event_id)), None)
        else:
            candidates = list(context.events)
            if params.event_time:
                target = parse_iso(params.event_time, context.now.tzinfo)
                if target is not None:
                    same_day = [
                        item for item in candidates
                        if context.start_of(item) is not None and context.start_of(item).date() == target.date()
                    ]
                    candidates = same_day or candidates
            result = match_event(params.event_title, candidates)
            if result.ok:
                event = result.value
        if event is None:
            return ActionOutcome.failed(f'I couldn\'t find an event called "{params.event_title or params.event_id}".')
        self.delete_event(caller_id, event)
        return ActionOutcome.ok(f'Cancelled "{event.get("title")}".', data={"id": event["id"]})


def _norm(value: Any) -> str:
    return " ".join(str(value or "").lower().split())


HANDLERS = [CreateEvent, UpdateEvent, CancelEvent]
