"""Helpers for working with lists of speech marks.

Includes a words-per-minute estimator for backends that return no timing data,
rate adjustment, validation, time lookup and summary statistics.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final

from models.re_models import WORD_PATTERN
from models.speech_models import SpeechMark

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__: list[str] = [
    "SpeechMarkStats",
    "adjust_marks_for_rate",
    "estimate_speech_marks",
    "mark_at_time",
    "speech_mark_stats",
    "validate_speech_marks",
]

DEFAULT_WORDS_PER_MINUTE: Final[int] = 150
DEFAULT_LOOKUP_THRESHOLD_MS: Final[int] = 500


@dataclass(frozen=True)
class SpeechMarkStats:
    count: int
    total_duration_ms: int
    avg_word_duration_ms: float
    words_per_minute: float


def estimate_speech_marks(text: str, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE) -> list[SpeechMark]:
    """Estimate word timing from an average speaking rate.

    Args:
        text (str): Text that will be spoken.
        words_per_minute (int): Assumed speaking rate at 1.0x.

    Returns:
        list[SpeechMark]: One evenly spaced mark per word.

    Raises:
        ValueError: If `words_per_minute` is not positive.
    """
    if words_per_minute <= 0:
        msg: str = f"words_per_minute must be positive, got {words_per_minute}"
        raise ValueError(msg)

    ms_per_word: float = 60_000 / words_per_minute
    return [
        SpeechMark(
            time_ms=round(index * ms_per_word),
            start_offset=match.start(),
            end_offset=match.end(),
            value=match.group(0),
        )
        for index, match in enumerate(WORD_PATTERN.finditer(text))
    ]


def adjust_marks_for_rate(marks: Sequence[SpeechMark], rate: float) -> list[SpeechMark]:
    """Scale 1.0x mark times to the given playback rate."""
    if rate <= 0:
        msg: str = f"rate must be positive, got {rate}"
        raise ValueError(msg)
    if rate == 1.0:
        return list(marks)
    return [replace(mark, time_ms=round(mark.time_ms / rate)) for mark in marks]


def validate_speech_marks(marks: Sequence[SpeechMark], text_length: int | None = None) -> list[str]:
    """Check marks for invalid ranges and ordering.

    Args:
        marks (Sequence[SpeechMark]): Marks to check.
        text_length (int | None): Length of the text the offsets refer to, if known.

    Returns:
        list[str]: Problems found, empty when the marks are valid.
    """
    errors: list[str] = []
    for index, mark in enumerate(marks):
        if mark.time_ms < 0:
            errors.append(f"Mark {index}: invalid time ({mark.time_ms})")
        if mark.start_offset < 0:
            errors.append(f"Mark {index}: invalid start ({mark.start_offset})")
        if mark.end_offset <= mark.start_offset:
            errors.append(f"Mark {index}: invalid end ({mark.end_offset}, start: {mark.start_offset})")
        if text_length is not None and mark.end_offset > text_length:
            errors.append(f"Mark {index}: end ({mark.end_offset}) is beyond the text length ({text_length})")
        if not mark.value:
            errors.append(f"Mark {index}: empty value")
        if index > 0 and mark.time_ms < marks[index - 1].time_ms:
            errors.append(
                f"Mark {index}: time ({mark.time_ms}) is less than previous mark ({marks[index - 1].time_ms})"
            )
    return errors


def mark_at_time(
    marks: Sequence[SpeechMark], time_ms: int, threshold_ms: int = DEFAULT_LOOKUP_THRESHOLD_MS
) -> SpeechMark | None:
    """Find the mark closest to a point in time.

    Args:
        marks (Sequence[SpeechMark]): Marks sorted by time.
        time_ms (int): Time to look up.
        threshold_ms (int): Maximum distance accepted.

    Returns:
        SpeechMark | None: The closest mark within the threshold.
    """
    if not marks:
        return None
    times: list[int] = [mark.time_ms for mark in marks]
    pos: int = bisect.bisect_left(times, time_ms)
    candidates: list[SpeechMark] = [marks[i] for i in (pos - 1, pos) if 0 <= i < len(marks)]
    closest: SpeechMark = min(candidates, key=lambda mark: abs(mark.time_ms - time_ms))
    if abs(closest.time_ms - time_ms) <= threshold_ms:
        return closest
    return None


def speech_mark_stats(marks: Sequence[SpeechMark]) -> SpeechMarkStats:
    words: list[SpeechMark] = [mark for mark in marks if mark.type == "word"]
    if not marks or not words:
        return SpeechMarkStats(count=len(marks), total_duration_ms=0, avg_word_duration_ms=0.0, words_per_minute=0.0)

    total: int = marks[-1].time_ms
    wpm: float = len(words) / total * 60_000 if total > 0 else 0.0
    return SpeechMarkStats(
        count=len(marks),
        total_duration_ms=total,
        avg_word_duration_ms=total / len(words),
        words_per_minute=wpm,
    )
