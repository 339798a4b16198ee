from __future__ import annotations

import json
import logging

import pytest

from coworkr.agent.observability.log_manager import LogManager, get_component_logger


def _payload(record: logging.LogRecord) -> dict:
    message = record.getMessage()
    assert message.startswith("event ")
    return json.loads(message[len("event ") :])


def test_component_logger_lifts_key_values_into_fields(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="coworkr.agent.observability")
    get_component_logger("agent.conversation").info(
        "turn completed event=turn.completed user_id=%s intent=%s latency_ms=%s",
        "u1",
        "CREATE_TASK",
        42,
    )

    payload = _payload(caplog.records[-1])
    assert payload["event"] == "turn.completed"
    assert payload["component"] == "agent.conversation"
    assert payload["user_id"] == "u1"
    assert payload["intent"] == "CREATE_TASK"
    assert payload["latency_ms"] == 42
    assert "status" not in payload


def test_message_without_event_gets_component_default(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="coworkr.agent.observability")
    get_component_logger("actions.dispatcher").warning("something odd")

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert _payload(record)["event"] == "actions.dispatcher.log"


def test_emit_exception_records_type(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="coworkr.agent.observability")
    try:
        raise RuntimeError("store down")
    except RuntimeError as exc:
        LogManager().emit_exception(event="turn.failed", exc=exc, user_id="u1")

    payload = _payload(caplog.records[-1])
    assert payload["error_code"] == "RuntimeError"
    assert payload["exception_message"] == "store down"
