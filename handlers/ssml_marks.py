"""SSML mark injection and timepoint reconciliation.

Providers that only report timing for SSML `<mark/>` tags need the text annotated before
synthesis. `inject_marks` inserts one zero-width mark per word and returns the word map used
afterwards by `extract_speech_marks` to turn the provider's timepoints back into character
offsets of the original text.

Text that is already SSML cannot be annotated safely in place. `prepare_text` falls back to
stripping the existing markup and annotating the remaining plain text; offsets then refer to
that plain text, which is returned alongside the annotated copy.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from models.re_models import SSML_DETECT_PATTERN, SSML_TAG_PATTERN, WHITESPACE_PATTERN, WORD_PATTERN
from models.speech_models import SpeechMark, Timepoint, WordTiming
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable

__all__: list[str] = [
    "PreparedText",
    "detect_ssml",
    "escape_markup",
    "extract_speech_marks",
    "inject_marks",
    "prepare_text",
    "strip_markup",
    "tokenize_words",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

MARK_PREFIX: Final[str] = "w"

# "&" must be replaced first so the other entities are not escaped twice
_ESCAPES: Final[tuple[tuple[str, str], ...]] = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


@dataclass(frozen=True)
class PreparedText:
    """Text ready to be sent to a mark-aware provider.

    Attributes:
        text (str): Plain text the word offsets refer to.
        ssml (str): Annotated SSML document.
        word_map (list[WordTiming]): Words in order with their mark names.
        degraded (bool): True when the input was SSML and its markup was discarded.
    """

    text: str
    ssml: str
    word_map: list[WordTiming] = field(default_factory=list)
    degraded: bool = False


def escape_markup(text: str) -> str:
    """Escape the five XML special characters."""
    for char, entity in _ESCAPES:
        text = text.replace(char, entity)
    return text


def tokenize_words(text: str) -> list[WordTiming]:
    """Split text into word tokens and name a marker for each.

    Args:
        text (str): Plain text.

    Returns:
        list[WordTiming]: Words in order of appearance, named `w0`, `w1`, ...
    """
    return [
        WordTiming(
            word=match.group(0),
            start_offset=match.start(),
            end_offset=match.end(),
            mark_name=f"{MARK_PREFIX}{index}",
        )
        for index, match in enumerate(WORD_PATTERN.finditer(text))
    ]


def inject_marks(text: str) -> tuple[str, list[WordTiming]]:
    """Annotate plain text with one SSML mark before each word.

    Everything outside the inserted tags is the original text, escaped; whitespace and
    punctuation are kept as they are.

    Args:
        text (str): Plain text (not SSML).

    Returns:
        tuple[str, list[WordTiming]]: The `<speak>` document and the word map.
    """
    word_map: list[WordTiming] = tokenize_words(text)
    parts: list[str] = []
    cursor: int = 0
    for timing in word_map:
        parts.append(escape_markup(text[cursor : timing.start_offset]))
        parts.append(f'<mark name="{timing.mark_name}"/>')
        parts.append(escape_markup(timing.word))
        cursor = timing.end_offset
    parts.append(escape_markup(text[cursor:]))
    logger.debug("Injected %d marks", len(word_map))
    return f"<speak>{''.join(parts)}</speak>", word_map


def detect_ssml(text: str) -> bool:
    """Check whether text contains SSML elements."""
    return SSML_DETECT_PATTERN.search(text) is not None


def strip_markup(ssml: str) -> str:
    """Remove all tags and collapse whitespace.

    Entities are decoded so the result can be escaped again without doubling them.
    """
    plain: str = SSML_TAG_PATTERN.sub(" ", ssml)
    plain = WHITESPACE_PATTERN.sub(" ", plain).strip()
    return html.unescape(plain)


def prepare_text(text: str) -> PreparedText:
    """Annotate text for a mark-aware provider, degrading SSML input to plain text.

    Args:
        text (str): Plain text or SSML.

    Returns:
        PreparedText: Annotated document and word map.
    """
    degraded: bool = detect_ssml(text)
    if degraded:
        logger.info("Input is SSML; existing markup is discarded to inject timing marks")
        text = strip_markup(text)
    ssml, word_map = inject_marks(text)
    return PreparedText(text=text, ssml=ssml, word_map=word_map, degraded=degraded)


def extract_speech_marks(timepoints: Iterable[Timepoint], word_map: Iterable[WordTiming]) -> list[SpeechMark]:
    """Resolve provider timepoints to speech marks.

    Timepoints whose mark name is not in the word map are dropped. The result is ordered
    by time, and by word position for equal times.

    Args:
        timepoints (Iterable[Timepoint]): Raw provider timepoints.
        word_map (Iterable[WordTiming]): Word map returned by `inject_marks`.

    Returns:
        list[SpeechMark]: Speech marks sorted by `time_ms`.
    """
    words: dict[str, WordTiming] = {timing.mark_name: timing for timing in word_map}
    marks: list[SpeechMark] = []
    for point in timepoints:
        timing: WordTiming | None = words.get(point.mark_name)
        if timing is None:
            logger.debug("Dropping timepoint with unknown mark: '%s'", point.mark_name)
            continue
        marks.append(
            SpeechMark(
                time_ms=round(point.time_seconds * 1000),
                start_offset=timing.start_offset,
                end_offset=timing.end_offset,
                value=timing.word,
            )
        )
    marks.sort(key=lambda mark: (mark.time_ms, mark.start_offset))
    return marks
