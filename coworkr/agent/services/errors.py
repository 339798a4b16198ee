from __future__ import annotations


class RecordStoreError(RuntimeError):
    pass


class RecordNotFound(RecordStoreError):
    pass


class CalendarUnavailable(RuntimeError):
    pass


class SpeechUnavailable(RuntimeError):
    pass
