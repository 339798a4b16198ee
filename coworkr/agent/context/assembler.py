from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from coworkr.agent.cognition.datetime_resolver import format_clock, format_long_date, parse_iso
from coworkr.agent.context.workload import compute_workload, is_open
from coworkr.agent.observability.log_manager import get_component_logger
from coworkr.agent.services.calendar import ExternalCalendar
from coworkr.agent.services.errors import CalendarUnavailable
from coworkr.agent.services.record_store import RecordStore
from coworkr.agent.services.team_roster import TeamRoster
from coworkr.config.settings import get_team_id, get_timezone

logger = logging.getLogger(__name__)
_LOG = get_component_logger("context.assembler")

TASK_LIMIT = 50
EVENT_LIMIT = 50
RECORD_LIMIT = 20
CALENDAR_DAYS = 7


@dataclass(frozen=True)
class ContextSnapshot:
    """Request-scoped view of the caller's records at the start of a turn.

    `events` holds local and external events tagged with `source`; both are
    kept even when they describe the same meeting.
    """

    caller_id: str
    now: datetime
    current_date: str
    current_time: str
    tasks: tuple[dict[str, Any], ...] = ()
    events: tuple[dict[str, Any], ...] = ()
    projects: tuple[dict[str, Any], ...] = ()
    contacts: tuple[dict[str, Any], ...] = ()
    deals: tuple[dict[str, Any], ...] = ()
    accounts: tuple[dict[str, Any], ...] = ()
    team_members: tuple[dict[str, Any], ...] = ()

    @property
    def pending_tasks(self) -> tuple[dict[str, Any], ...]:
        return tuple(task for task in self.tasks if is_open(task))

    @property
    def upcoming_events(self) -> tuple[dict[str, Any], ...]:
        timed = [(self.start_of(event), event) for event in self.events]
        timed = [(start, event) for start, event in timed if start is not None and start >= self.now]
        timed.sort(key=lambda pair: pair[0])
        return tuple(event for _, event in timed)

    def events_on(self, day: datetime) -> tuple[dict[str, Any], ...]:
        return tuple(
            event
            for event in self.events
            if self.start_of(event) is not None and self.start_of(event).date() == day.date()
        )

    def start_of(self, event: dict[str, Any]) -> datetime | None:
        return parse_iso(event.get("startTime"), self.now.tzinfo)


def build_snapshot(
    caller_id: str,
    now: datetime,
    **records: list[dict[str, Any]],
) -> ContextSnapshot:
    return ContextSnapshot(
        caller_id=caller_id,
        now=now,
        current_date=format_long_date(now),
        current_time=format_clock(now),
        **{name: tuple(values) for name, values in records.items()},
    )


class ContextAssembler:
    def __init__(
        self,
        *,
        record_store: RecordStore,
        calendar: ExternalCalendar | None,
        roster: TeamRoster,
        team_id: str | None = None,
        timezone_name: str | None = None,
        clock: Callable[[ZoneInfo], datetime] | None = None,
    ) -> None:
        self._record_store = record_store
        self._calendar = calendar
        self._roster = roster
        self._team_id = team_id or get_team_id()
        self._tz = ZoneInfo(timezone_name or get_timezone())
        self._clock = clock or (lambda tz: datetime.now(tz))

    @property
    def timezone(self) -> ZoneInfo:
        return self._tz

    async def assemble(self, caller_id: str) -> ContextSnapshot:
        now = self._clock(self._tz)
        store = self._record_store
        tasks, local_events, external_events, projects, contacts, deals, accounts, members = await asyncio.gather(
            self._read(caller_id, "tasks", store.list, caller_id, "tasks", {"limit": TASK_LIMIT}),
            self._read(caller_id, "events", store.list, caller_id, "events", {"limit": EVENT_LIMIT}),
            self._read_external_events(caller_id),
            self._read(caller_id, "projects", store.list, caller_id, "projects", {"limit": RECORD_LIMIT}),
            self._read(caller_id, "contacts", store.list, caller_id, "contacts", {"limit": RECORD_LIMIT}),
            self._read(caller_id, "deals", store.list, caller_id, "deals", {"limit": RECORD_LIMIT}),
            self._read(caller_id, "accounts", store.list, caller_id, "accounts", {"limit": RECORD_LIMIT}),
            self._read_team(caller_id, now),
        )
        events = [_tag(event, "local") for event in local_events]
        events.extend(_tag(event, "external") for event in external_events)
        _LOG.info(
            "context assembled event=context.assembled user_id=%s tasks=%s events=%s members=%s",
            caller_id,
            len(tasks),
            len(events),
            len(members),
        )
        return build_snapshot(
            caller_id,
            now,
            tasks=tasks,
            events=events,
            projects=projects,
            contacts=contacts,
            deals=deals,
            accounts=accounts,
            team_members=members,
        )

    async def _read(
        self,
        caller_id: str,
        category: str,
        fn: Callable[..., list[dict[str, Any]]],
        *args: Any,
    ) -> list[dict[str, Any]]:
        try:
            return list(await asyncio.to_thread(fn, *args))
        except Exception as exc:
            logger.warning("context read failed user_id=%s category=%s error=%s", caller_id, category, exc)
            return []

    async def _read_external_events(self, caller_id: str) -> list[dict[str, Any]]:
        if self._calendar is None:
            return []
        try:
            return list(await asyncio.to_thread(self._calendar.list, caller_id, CALENDAR_DAYS))
        except CalendarUnavailable as exc:
            logger.debug("external calendar unavailable user_id=%s reason=%s", caller_id, exc)
            return []
        except Exception as exc:
            logger.warning("external calendar read failed user_id=%s error=%s", caller_id, exc)
            return []

    async def _read_team(self, caller_id: str, now: datetime) -> list[dict[str, Any]]:
        members = await self._read(caller_id, "team", self._roster.list_members, caller_id, self._team_id)
        if not members:
            return []
        member_tasks = await asyncio.gather(
            *(
                self._read(
                    caller_id,
                    "member_tasks",
                    self._record_store.list,
                    str(member.get("id") or ""),
                    "tasks",
                    None,
                )
                for member in members
            )
        )
        return [
            {**member, "workload": compute_workload(tasks, today=now.date(), tz=self._tz).to_dict()}
            for member, tasks in zip(members, member_tasks)
        ]


def _tag(event: dict[str, Any], source: str) -> dict[str, Any]:
    return {**event, "source": source}
