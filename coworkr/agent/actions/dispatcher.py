from __future__ import annotations

import asyncio
import logging
import time

from pydantic import ValidationError

from coworkr.agent.actions.base import ActionHandler, ActionOutcome, ActionServices
from coworkr.agent.actions.registry import ActionRegistry, build_default_registry
from coworkr.agent.cognition.intent_params import parse_params
from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.context.assembler import ContextSnapshot
from coworkr.agent.observability.log_manager import get_component_logger
from coworkr.agent.services.errors import CalendarUnavailable, RecordStoreError

logger = logging.getLogger(__name__)
_LOG = get_component_logger("actions.dispatcher")

INVALID_PARAMS_MESSAGE = "I couldn't understand some of those details. Could you say that again?"


class ActionDispatcher:
    def __init__(self, services: ActionServices, registry: ActionRegistry | None = None) -> None:
        registry = registry or build_default_registry()
        self._handlers: dict[IntentName, ActionHandler] = {}
        for intent in registry.list_keys():
            factory = registry.get(intent)
            if factory is not None:
                self._handlers[intent] = factory(services)

    def handles(self, intent: IntentName) -> bool:
        return intent in self._handlers

    async def dispatch(self, intent: Intent, caller_id: str, context: ContextSnapshot) -> ActionOutcome:
        handler = self._handlers.get(intent.name)
        if handler is None:
            logger.warning("no handler registered intent=%s", intent.name.value)
            return ActionOutcome.failed(f"no handler for {intent.name.value}", message=INVALID_PARAMS_MESSAGE)
        try:
            params = parse_params(intent.name, intent.params)
        except ValidationError as exc:
            logger.warning("handler params rejected intent=%s error=%s", intent.name.value, exc)
            return ActionOutcome.failed("invalid_params", message=INVALID_PARAMS_MESSAGE)
        missing = params.missing()
        if missing is not None:
            field, question = missing
            return ActionOutcome.ask(question, field)

        started = time.perf_counter()
        try:
            outcome = await asyncio.to_thread(handler.handle, params, caller_id, context)
        except (RecordStoreError, CalendarUnavailable) as exc:
            logger.warning("handler write failed intent=%s user_id=%s error=%s", intent.name.value, caller_id, exc)
            outcome = ActionOutcome.write_failed()
        _LOG.info(
            "action dispatched event=action.dispatched user_id=%s intent=%s status=%s latency_ms=%s",
            caller_id,
            intent.name.value,
            "ok" if outcome.success else "failed",
            int((time.perf_counter() - started) * 1000),
        )
        return outcome
