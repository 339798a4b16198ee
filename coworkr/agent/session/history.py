from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from coworkr.agent.session.kv_store import InMemoryKeyValueStore
from coworkr.config.settings import get_history_limit

_HISTORY_KEY_PREFIX = "history:"
_ROLES = {"user", "assistant"}


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


class ConversationHistory:
    def __init__(self, store: InMemoryKeyValueStore, *, limit: int | None = None) -> None:
        self._store = store
        self._limit = limit if limit is not None else get_history_limit()

    def load(self, caller_id: str) -> list[ConversationTurn]:
        raw = self._store.get(_key(caller_id))
        if not isinstance(raw, list):
            return []
        return list(raw)

    def append(self, caller_id: str, role: str, content: str) -> ConversationTurn:
        if role not in _ROLES:
            raise ValueError(f"unknown conversation role: {role}")
        turn = ConversationTurn(role=role, content=str(content or ""), timestamp=_now())
        turns = self.load(caller_id)
        turns.append(turn)
        self._store.set(_key(caller_id), turns[-self._limit :])
        return turn

    def clear(self, caller_id: str) -> None:
        self._store.delete(_key(caller_id))


def render_turns(turns: list[ConversationTurn], *, limit: int) -> str:
    recent = turns[-limit:] if limit > 0 else []
    lines = [f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in recent]
    return "\n".join(lines)


def _key(caller_id: str) -> str:
    return f"{_HISTORY_KEY_PREFIX}{caller_id}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
