from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from coworkr.agent.actions.base import ActionOutcome, ActionServices
from coworkr.agent.actions.dispatcher import ActionDispatcher
from coworkr.agent.cognition.datetime_resolver import DateTimeResolver
from coworkr.agent.cognition.intent_classifier import IntentClassifier
from coworkr.agent.cognition.intent_types import Intent, IntentName
from coworkr.agent.cognition.pending_clarification import (
    PendingClarificationStore,
    merge_follow_up,
    should_merge,
)
from coworkr.agent.cognition.providers import build_llm_client
from coworkr.agent.cognition.response_composer import ResponseComposer
from coworkr.agent.context.assembler import ContextAssembler
from coworkr.agent.observability.log_manager import get_component_logger, get_log_manager
from coworkr.agent.services import demo_seed
from coworkr.agent.services.calendar import InMemoryCalendar, RestCalendarClient
from coworkr.agent.services.errors import SpeechUnavailable
from coworkr.agent.services.record_store import InMemoryRecordStore, RestRecordStore
from coworkr.agent.services.speech import ElevenLabsSpeech
from coworkr.agent.services.team_roster import InMemoryTeamRoster, RestTeamRoster
from coworkr.agent.session.history import ConversationHistory
from coworkr.agent.session.kv_store import InMemoryKeyValueStore
from coworkr.config.settings import (
    get_state_ttl_seconds,
    get_store_backend,
    get_team_id,
    get_timezone,
    get_voice,
)

logger = logging.getLogger(__name__)
_LOG = get_component_logger("agent.conversation")

REPLY_COMPOSED = "composed"
REPLY_DIRECT = "direct"

# Intents that only talk; they are not reported as actions taken.
_CONVERSATIONAL = frozenset({IntentName.GENERAL_CHAT, IntentName.GREETING})


@dataclass(frozen=True)
class TurnResult:
    reply_text: str
    intent_name: str
    audio: bytes | None = None
    actions_taken: list[dict[str, Any]] = field(default_factory=list)
    outcome: ActionOutcome | None = None
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class ConversationEngine:
    """Runs one caller turn: context, intent, clarification merge, action, reply.

    Turns from the same caller are serialized; different callers run in
    parallel.
    """

    def __init__(
        self,
        *,
        assembler: ContextAssembler,
        classifier: IntentClassifier,
        dispatcher: ActionDispatcher,
        composer: ResponseComposer,
        history: ConversationHistory,
        pending: PendingClarificationStore,
        speech: Any | None = None,
        voice: str | None = None,
    ) -> None:
        self.assembler = assembler
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.composer = composer
        self.history = history
        self.pending = pending
        self.speech = speech
        self.voice = voice or get_voice()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, caller_id: str) -> asyncio.Lock:
        lock = self._locks.get(caller_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[caller_id] = lock
        return lock

    async def handle_turn(
        self,
        utterance: str,
        caller_id: str,
        wants_voice: bool = False,
        *,
        reply_mode: str = REPLY_COMPOSED,
    ) -> TurnResult:
        text = str(utterance or "").strip()
        if not text:
            raise ValueError("utterance is required")
        async with self._lock_for(caller_id):
            started = time.perf_counter()
            result = await self._run_turn(text, caller_id, wants_voice, reply_mode)
            _LOG.info(
                "turn completed event=turn.completed user_id=%s intent=%s actions=%s voice=%s latency_ms=%s",
                caller_id,
                result.intent_name,
                len(result.actions_taken),
                result.audio is not None,
                int((time.perf_counter() - started) * 1000),
            )
            return result

    async def _run_turn(self, utterance: str, caller_id: str, wants_voice: bool, reply_mode: str) -> TurnResult:
        context = await self.assembler.assemble(caller_id)
        turns = self.history.load(caller_id)
        intent = await self.classifier.classify(utterance, context, turns)
        intent = self._merge_pending(intent, utterance, caller_id)

        outcome: ActionOutcome | None = None
        actions: list[dict[str, Any]] = []
        if intent.needs_more_info:
            reply = self._ask(caller_id, intent, intent.needs_more_info, intent.missing_field)
        else:
            outcome = await self.dispatcher.dispatch(intent, caller_id, context)
            if outcome.needs_more_info:
                reply = self._ask(caller_id, intent, outcome.needs_more_info, outcome.missing_field)
            else:
                if outcome.success and intent.name not in _CONVERSATIONAL:
                    actions.append({"type": intent.name.value, "outcome": outcome.to_dict()})
                if reply_mode == REPLY_DIRECT:
                    reply = outcome.message or ""
                else:
                    reply = await self.composer.compose(utterance, context, intent, outcome, turns)

        self.history.append(caller_id, "user", utterance)
        self.history.append(caller_id, "assistant", reply)
        audio = await self._synthesize(reply) if wants_voice else None
        return TurnResult(
            reply_text=reply,
            intent_name=intent.name.value,
            audio=audio,
            actions_taken=actions,
            outcome=outcome,
        )

    def _merge_pending(self, intent: Intent, utterance: str, caller_id: str) -> Intent:
        pending = self.pending.get(caller_id)
        if not should_merge(pending, intent, utterance):
            return intent
        merged = merge_follow_up(pending, intent, utterance)
        self.pending.clear(caller_id)
        logger.info(
            "merged follow-up user_id=%s intent=%s field=%s",
            caller_id,
            merged.name.value,
            pending.missing_field,
        )
        return merged

    def _ask(self, caller_id: str, intent: Intent, question: str, missing_field: str | None) -> str:
        self.pending.set(caller_id, intent.name, intent.params, missing_field)
        return question

    async def _synthesize(self, reply: str) -> bytes | None:
        if self.speech is None or not reply:
            return None
        try:
            return await asyncio.to_thread(self.speech.synthesize, reply, self.voice)
        except SpeechUnavailable as exc:
            logger.warning("speech synthesis unavailable: %s", exc)
            return None

    def reset(self, caller_id: str) -> None:
        self.history.clear(caller_id)
        self.pending.clear(caller_id)


def build_engine(*, backend: str | None = None, llm_client: Any | None = None) -> ConversationEngine:
    """Wire an engine from the environment.

    `memory` keeps every collaborator in process and seeds demo records;
    `rest` talks to the Coworkr app.
    """
    backend = backend or get_store_backend()
    timezone_name = get_timezone()
    team_id = get_team_id()
    if backend == "memory":
        now = datetime.now(ZoneInfo(timezone_name))
        seed = demo_seed.demo_records(demo_seed.TEAM_USERS[0]["id"], now)
        record_store: Any = InMemoryRecordStore(seed)
        calendar: Any = InMemoryCalendar(linked=False)
        roster: Any = InMemoryTeamRoster(demo_seed.team_members(team_id), team_id=team_id)
    else:
        record_store = RestRecordStore()
        calendar = RestCalendarClient()
        roster = RestTeamRoster()

    llm = llm_client or build_llm_client()
    state = InMemoryKeyValueStore(ttl_seconds=get_state_ttl_seconds())
    services = ActionServices(
        record_store=record_store,
        calendar=calendar,
        resolver=DateTimeResolver(),
        timezone=ZoneInfo(timezone_name),
    )
    get_log_manager().emit(
        event="engine.built",
        component="agent.conversation",
        payload={"backend": backend, "team_id": team_id, "timezone": timezone_name},
    )
    return ConversationEngine(
        assembler=ContextAssembler(
            record_store=record_store,
            calendar=calendar,
            roster=roster,
            team_id=team_id,
            timezone_name=timezone_name,
        ),
        classifier=IntentClassifier(llm),
        dispatcher=ActionDispatcher(services),
        composer=ResponseComposer(llm),
        history=ConversationHistory(state),
        pending=PendingClarificationStore(state),
        speech=ElevenLabsSpeech(),
    )
