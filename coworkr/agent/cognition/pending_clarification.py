from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from coworkr.agent.cognition.intent_classifier import validate_intent
from coworkr.agent.cognition.intent_types import FOLLOW_UP_INTENTS, Intent, IntentName
from coworkr.agent.session.kv_store import InMemoryKeyValueStore

MAX_FOLLOW_UP_TOKENS = 6
_PENDING_KEY_PREFIX = "pending:"


@dataclass(frozen=True)
class PendingClarification:
    intent: IntentName
    params: dict[str, Any]
    missing_field: str | None
    created_at: str


class PendingClarificationStore:
    """At most one unanswered clarification per caller; the newest write wins."""

    def __init__(self, store: InMemoryKeyValueStore) -> None:
        self._store = store

    def get(self, caller_id: str) -> PendingClarification | None:
        raw = self._store.get(_key(caller_id))
        return raw if isinstance(raw, PendingClarification) else None

    def set(
        self,
        caller_id: str,
        intent: IntentName,
        params: dict[str, Any],
        missing_field: str | None,
    ) -> PendingClarification:
        self.clear(caller_id)
        pending = PendingClarification(
            intent=intent,
            params=dict(params),
            missing_field=missing_field,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._store.set(_key(caller_id), pending)
        return pending

    def clear(self, caller_id: str) -> None:
        self._store.delete(_key(caller_id))


def should_merge(pending: PendingClarification | None, intent: Intent, utterance: str) -> bool:
    if pending is None:
        return False
    if intent.name in FOLLOW_UP_INTENTS:
        return True
    return len(str(utterance or "").split()) <= MAX_FOLLOW_UP_TOKENS


def merge_follow_up(pending: PendingClarification, intent: Intent, utterance: str) -> Intent:
    """Fold a follow-up answer into the waiting intent.

    With a known missing field the reply becomes that field's literal value.
    Without one (the "what should I change" questions) the new
    classification's params are layered over the stored ones.
    """
    params = dict(pending.params)
    if pending.missing_field:
        params[pending.missing_field] = str(utterance or "").strip()
    else:
        params.update({key: value for key, value in intent.params.items() if value not in (None, "")})
    return validate_intent(Intent(name=pending.intent, params=params))


def _key(caller_id: str) -> str:
    return f"{_PENDING_KEY_PREFIX}{caller_id}"
