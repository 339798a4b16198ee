from __future__ import annotations

import json
import logging
import re
import traceback
from typing import Any

LOGGER_NAME = "coworkr.agent.observability"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}
_KEY_VALUE = re.compile(r"([A-Za-z_][\w.-]*)=(\"[^\"]*\"|'[^']*'|\S+)")
_INTEGER = re.compile(r"-?\d+")


class LogManager:
    """Writes one `event {json}` line per engine event.

    Turn-level fields (`user_id`, `intent`, `status`, `latency_ms`) sit next to
    the free-form payload; fields left as None are dropped from the line.
    """

    def __init__(self, logger_name: str = LOGGER_NAME) -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(
        self,
        *,
        event: str,
        level: str = "info",
        component: str | None = None,
        user_id: str | None = None,
        intent: str | None = None,
        status: str | None = None,
        latency_ms: int | None = None,
        error_code: str | None = None,
        message: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        fields: dict[str, Any] = {
            "event": event or "unknown_event",
            "component": component,
            "user_id": user_id,
            "intent": intent,
            "status": status,
            "latency_ms": latency_ms,
            "error_code": error_code,
            "message": message,
        }
        for key, value in (payload or {}).items():
            if fields.get(key) is None:
                fields[key] = value
        line = json.dumps(
            {key: value for key, value in fields.items() if value is not None},
            ensure_ascii=False,
            separators=(",", ":"),
            default=str,
        )
        self._logger.log(_LEVELS.get(str(level).lower(), logging.INFO), "event %s", line)

    def emit_exception(
        self,
        *,
        event: str,
        exc: BaseException,
        component: str | None = None,
        user_id: str | None = None,
        intent: str | None = None,
        message: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        details = dict(payload or {})
        details["exception_message"] = str(exc)
        details["stack_excerpt"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__, limit=8))
        self.emit(
            event=event,
            level="error",
            component=component,
            user_id=user_id,
            intent=intent,
            status="failed",
            error_code=type(exc).__name__,
            message=message or str(exc),
            payload=details,
        )


class ComponentLogger:
    """Logger-shaped front for a component.

    `key=value` tokens in the formatted message are lifted into the event
    line, so call sites keep printf-style messages.
    """

    def __init__(self, manager: LogManager, component: str) -> None:
        self._manager = manager
        self.component = component

    def debug(self, msg: str, *args: Any) -> None:
        self._log("debug", msg, args)

    def info(self, msg: str, *args: Any) -> None:
        self._log("info", msg, args)

    def warning(self, msg: str, *args: Any) -> None:
        self._log("warning", msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log("error", msg, args)

    def _log(self, level: str, msg: str, args: tuple[Any, ...]) -> None:
        text = _render(msg, args)
        fields = parse_fields(text)
        event = str(fields.pop("event", "") or f"{self.component}.log")
        latency = fields.pop("latency_ms", None)
        self._manager.emit(
            event=event,
            level=level,
            component=self.component,
            user_id=_text(fields.pop("user_id", None)),
            intent=_text(fields.pop("intent", None)),
            status=_text(fields.pop("status", None)),
            latency_ms=latency if isinstance(latency, int) else None,
            message=text,
            payload=fields,
        )


_manager: LogManager | None = None


def get_log_manager() -> LogManager:
    global _manager
    if _manager is None:
        _manager = LogManager()
    return _manager


def get_component_logger(component: str) -> ComponentLogger:
    return ComponentLogger(get_log_manager(), component)


def parse_fields(text: str) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for key, raw in _KEY_VALUE.findall(text or ""):
        value = raw.rstrip(",")
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        fields[key] = int(value) if _INTEGER.fullmatch(value) else value
    return fields


def _render(msg: str, args: tuple[Any, ...]) -> str:
    if not args:
        return str(msg)
    try:
        return str(msg) % args
    except (TypeError, ValueError):
        return f"{msg} | args={', '.join(str(arg) for arg in args)}"


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
