"""Regular expressions for word tokenization and SSML handling."""

from __future__ import annotations

import re
from re import Pattern
from typing import Final

__all__: list[str] = [
    "SSML_DETECT_PATTERN",
    "SSML_TAG_PATTERN",
    "WHITESPACE_PATTERN",
    "WORD_PATTERN",
]

# Word token: letters, digits, underscore and apostrophes between word boundaries
# Example: "don't stop" -> "don't", "stop"
WORD_PATTERN: Final[Pattern[str]] = re.compile(r"\b[\w']+\b")

# Any markup tag, including self-closing ones
# Example: '<mark name="w0"/>'
SSML_TAG_PATTERN: Final[Pattern[str]] = re.compile(r"<[^>]+>")

# Opening tags that identify text as SSML rather than plain text
SSML_DETECT_PATTERN: Final[Pattern[str]] = re.compile(
    r"""
    <(?:speak|prosody|emphasis|break|phoneme|say-as|mark)
    (?=[\s/>])
""",
    re.VERBOSE | re.IGNORECASE,
)

WHITESPACE_PATTERN: Final[Pattern[str]] = re.compile(r"\s+")
