from __future__ import annotations

from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Any, Iterable

from coworkr.agent.cognition.datetime_resolver import parse_iso

OPEN_STATUSES = frozenset({"pending", "in_progress", "in-progress", "open"})
HIGH_PRIORITIES = frozenset({"high", "urgent"})


@dataclass(frozen=True)
class Workload:
    open_tasks: int = 0
    high_priority_tasks: int = 0
    tasks_due_today: int = 0

    @property
    def score(self) -> int:
        return workload_score(self.open_tasks, self.high_priority_tasks)

    def to_dict(self) -> dict[str, int]:
        return {
            "openTasks": self.open_tasks,
            "highPriorityTasks": self.high_priority_tasks,
            "tasksDueToday": self.tasks_due_today,
            "score": self.score,
        }


def workload_score(open_tasks: int, high_priority_tasks: int) -> int:
    return open_tasks + 2 * high_priority_tasks


def is_open(task: dict[str, Any]) -> bool:
    return str(task.get("status") or "").lower() in OPEN_STATUSES


def is_high_priority(task: dict[str, Any]) -> bool:
    return str(task.get("priority") or "").lower() in HIGH_PRIORITIES


def compute_workload(tasks: Iterable[dict[str, Any]], *, today: date, tz: tzinfo | None = None) -> Workload:
    open_tasks = [task for task in tasks if is_open(task)]
    due_today = 0
    for task in open_tasks:
        due = parse_iso(task.get("dueDate"), tz)
        if due is not None and due.date() == today:
            due_today += 1
    return Workload(
        open_tasks=len(open_tasks),
        high_priority_tasks=sum(1 for task in open_tasks if is_high_priority(task)),
        tasks_due_today=due_today,
    )


def member_workload(member: dict[str, Any]) -> dict[str, int]:
    raw = member.get("workload")
    if not isinstance(raw, dict):
        return Workload().to_dict()
    open_tasks = int(raw.get("openTasks") or 0)
    high = int(raw.get("highPriorityTasks") or 0)
    return {
        "openTasks": open_tasks,
        "highPriorityTasks": high,
        "tasksDueToday": int(raw.get("tasksDueToday") or 0),
        "score": int(raw.get("score") if raw.get("score") is not None else workload_score(open_tasks, high)),
    }
