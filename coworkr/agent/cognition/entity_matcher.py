from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class MatchResult:
    ok: bool
    value: Any | None = None
    error: str | None = None


def match(
    query: str | None,
    candidates: Iterable[Any],
    text_of: Callable[[Any], str],
    parts_of: Callable[[Any], Sequence[str]] | None = None,
) -> MatchResult:
    """Resolve a spoken reference against candidates.

    Rules run in order and the first rule with any hit wins; within a rule
    the first candidate in iteration order is returned:
    exact full text, then substring either way, then prefix of a component.
    """
    needle = _normalize(query)
    if len(needle) < MIN_QUERY_LENGTH:
        return MatchResult(ok=False, error="query_too_short")
    items = list(candidates)
    parts = parts_of or (lambda item: str(text_of(item) or "").split())

    for item in items:
        if _normalize(text_of(item)) == needle:
            return MatchResult(ok=True, value=item)

    for item in items:
        text = _normalize(text_of(item))
        if text and (needle in text or text in needle):
            return MatchResult(ok=True, value=item)

    for item in items:
        for part in parts(item):
            component = _normalize(part)
            if component and component.startswith(needle):
                return MatchResult(ok=True, value=item)

    return MatchResult(ok=False, error="no_match")


def match_task(query: str | None, tasks: Iterable[dict[str, Any]]) -> MatchResult:
    return match(query, tasks, text_of=lambda task: str(task.get("title") or ""))


def match_event(query: str | None, events: Iterable[dict[str, Any]]) -> MatchResult:
    return match(query, events, text_of=lambda event: str(event.get("title") or ""))


def match_member(query: str | None, members: Iterable[dict[str, Any]]) -> MatchResult:
    return match(query, members, text_of=member_full_name, parts_of=_member_parts)


def member_full_name(member: dict[str, Any]) -> str:
    first = str(member.get("firstName") or "").strip()
    last = str(member.get("lastName") or "").strip()
    return f"{first} {last}".strip()


def _member_parts(member: dict[str, Any]) -> list[str]:
    return [str(member.get("firstName") or ""), str(member.get("lastName") or "")]


def _normalize(text: str | None) -> str:
    return " ".join(str(text or "").lower().split())
