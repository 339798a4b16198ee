from __future__ import annotations

from typing import Callable, Dict

from coworkr.agent.actions.base import ActionHandler, ActionServices
from coworkr.agent.cognition.intent_types import IntentName


class ActionRegistry:
    def __init__(self) -> None:
        self._handlers: Dict[IntentName, Callable[[ActionServices], ActionHandler]] = {}

    def register(self, intent: IntentName, factory: Callable[[ActionServices], ActionHandler]) -> None:
        if intent in self._handlers:
            raise ValueError(f"Handler already registered: {intent.value}")
        self._handlers[intent] = factory

    def get(self, intent: IntentName) -> Callable[[ActionServices], ActionHandler] | None:
        return self._handlers.get(intent)

    def list_keys(self) -> list[IntentName]:
        return list(self._handlers.keys())


def build_default_registry() -> ActionRegistry:
    from coworkr.agent.actions import events, records, summaries, tasks, team

    registry = ActionRegistry()
    for module in (tasks, events, records, team, summaries):
        for handler_cls in module.HANDLERS:
            registry.register(handler_cls.intent, handler_cls)
    return registry
