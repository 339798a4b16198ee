from __future__ import annotations

import re
from datetime import datetime, timedelta, tzinfo

from dateutil.parser import isoparse
from dateutil.parser import parse as parse_datetime
from dateutil.relativedelta import relativedelta

DEFAULT_HOUR = 9
END_OF_DAY_HOUR = 17

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

_TIME_WORDS = {
    "noon": (12, 0),
    "midday": (12, 0),
    "midnight": (0, 0),
    "morning": (9, 0),
    "afternoon": (14, 0),
    "evening": (18, 0),
}

_EN_NUMBERS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

_WEEKDAY_PATTERN = re.compile(r"\b(" + "|".join(_WEEKDAYS) + r")\b")
_HALF_PAST_PATTERN = re.compile(r"\bhalf past (\d{1,2})\b")
_QUARTER_PAST_PATTERN = re.compile(r"\bquarter past (\d{1,2})\b")
_QUARTER_TO_PATTERN = re.compile(r"\bquarter to (\d{1,2})\b")
_MERIDIEM_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)")
_COLON_PATTERN = re.compile(r"(\d{1,2}):(\d{2})()")
_CLOCK_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?")
_PM_WORDS = re.compile(r"\b(afternoon|evening|tonight|night)\b")
_AM_WORDS = re.compile(r"\bmorning\b")


class DateTimeResolver:
    """Turns spoken date and time fragments into a concrete instant.

    The reference instant anchors every relative expression and its tzinfo
    is carried through. Resolution never raises: an unreadable date keeps
    the reference date and a missing or unreadable time becomes 09:00.
    """

    def resolve(
        self,
        date_expr: str | None,
        time_expr: str | None,
        reference: datetime,
    ) -> datetime:
        return resolve_datetime(date_expr, time_expr, reference)


def resolve_datetime(
    date_expr: str | None,
    time_expr: str | None,
    reference: datetime,
) -> datetime:
    value = reference
    time_was_set = False

    date_text = _normalize_text(date_expr)
    if date_text:
        value, time_was_set = _resolve_date(date_text, reference)

    time_text = _replace_number_words(_normalize_text(time_expr))
    if time_text:
        clock = _resolve_clock(time_text)
        if clock is not None:
            hour, minute = clock
            value = value.replace(hour=hour, minute=minute, second=0, microsecond=0)
            time_was_set = True

    if not time_was_set:
        value = value.replace(hour=DEFAULT_HOUR, minute=0, second=0, microsecond=0)
    return value


def _resolve_date(text: str, reference: datetime) -> tuple[datetime, bool]:
    if "day after tomorrow" in text:
        return reference + timedelta(days=2), False
    if "today" in text:
        return reference, False
    if "tomorrow" in text:
        return reference + timedelta(days=1), False
    if "end of day" in text or re.search(r"\beod\b", text):
        return _at_hour(reference, END_OF_DAY_HOUR), True
    if "end of week" in text or re.search(r"\beow\b", text):
        friday = reference + timedelta(days=_days_until(reference, _WEEKDAYS["friday"]))
        return _at_hour(friday, END_OF_DAY_HOUR), True
    if "next week" in text:
        return reference + timedelta(days=7), False
    if "next month" in text:
        return reference + relativedelta(months=1), False
    weekday = _WEEKDAY_PATTERN.search(text)
    if weekday:
        target = _WEEKDAYS[weekday.group(1)]
        return reference + timedelta(days=_days_until(reference, target)), False
    return _parse_generic_date(text, reference), False


def _days_until(reference: datetime, target_weekday: int) -> int:
    # Same weekday rolls a full week forward.
    return (target_weekday - reference.weekday() + 7) % 7 or 7


def _parse_generic_date(text: str, reference: datetime) -> datetime:
    try:
        parsed = parse_datetime(text, default=reference.replace(tzinfo=None))
    except (ValueError, OverflowError):
        return reference
    if reference.tzinfo is None:
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=reference.tzinfo)
    return parsed.astimezone(reference.tzinfo)


def _resolve_clock(text: str) -> tuple[int, int] | None:
    match = _HALF_PAST_PATTERN.search(text)
    if match:
        return _business_hour(int(match.group(1))), 30
    match = _QUARTER_PAST_PATTERN.search(text)
    if match:
        return _business_hour(int(match.group(1))), 15
    match = _QUARTER_TO_PATTERN.search(text)
    if match:
        hour = _business_hour(int(match.group(1))) - 1
        return (hour if hour >= 0 else 23), 45

    if not any(ch.isdigit() for ch in text):
        for word, clock in _TIME_WORDS.items():
            if re.search(rf"\b{word}\b", text):
                return clock
        return None

    match = _MERIDIEM_PATTERN.search(text) or _COLON_PATTERN.search(text) or _CLOCK_PATTERN.search(text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    period = (match.group(3) or "").replace(".", "")
    if period == "pm" and hour < 12:
        hour += 12
    if period == "am" and hour == 12:
        hour = 0
    if not period and hour < 12 and _PM_WORDS.search(text):
        hour += 12
    elif not period and 1 <= hour <= 6 and not _AM_WORDS.search(text):
        hour += 12
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def _business_hour(hour: int) -> int:
    if hour <= 6:
        return hour + 12
    return hour


def _at_hour(value: datetime, hour: int) -> datetime:
    return value.replace(hour=hour, minute=0, second=0, microsecond=0)


def _normalize_text(text: str | None) -> str:
    return re.sub(r"\s+", " ", str(text or "").strip().lower())


def _replace_number_words(text: str) -> str:
    tokens = text.split()
    replaced: list[str] = []
    for token in tokens:
        if token in _EN_NUMBERS:
            replaced.append(str(_EN_NUMBERS[token]))
            continue
        replaced.append(token)
    return " ".join(replaced)


def parse_iso(raw: object, tz: tzinfo | None = None) -> datetime | None:
    """Parse a stored ISO-8601 value; naive values are read in `tz`."""
    if isinstance(raw, datetime):
        value = raw
    else:
        text = str(raw or "").strip()
        if not text:
            return None
        try:
            value = isoparse(text)
        except (ValueError, OverflowError):
            return None
    if value.tzinfo is None:
        return value.replace(tzinfo=tz) if tz is not None else value
    return value.astimezone(tz) if tz is not None else value


def format_long_date(value: datetime) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_short_date(value: datetime) -> str:
    return f"{value:%A}, {value:%b} {value.day}"


def format_clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    period = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {period}"
