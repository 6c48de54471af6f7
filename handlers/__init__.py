"""Text and transport helpers for SpeechSync.

This package provides SSML mark injection and timepoint reconciliation, speech mark
utilities, and asynchronous HTTP communication.
"""

from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError, AsyncHttp
from handlers.speech_marks import (
    adjust_marks_for_rate,
    estimate_speech_marks,
    mark_at_time,
    speech_mark_stats,
    validate_speech_marks,
)
from handlers.ssml_marks import PreparedText, extract_speech_marks, inject_marks, prepare_text, strip_markup

__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
    "PreparedText",
    "adjust_marks_for_rate",
    "estimate_speech_marks",
    "extract_speech_marks",
    "inject_marks",
    "mark_at_time",
    "prepare_text",
    "speech_mark_stats",
    "strip_markup",
    "validate_speech_marks",
]
