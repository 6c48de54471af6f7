from __future__ import annotations

import logging
import re

import pytest

from handlers.ssml_marks import (
    detect_ssml,
    escape_markup,
    extract_speech_marks,
    inject_marks,
    prepare_text,
    strip_markup,
    tokenize_words,
)
from models.speech_models import SpeechMark, Timepoint


def test_tokenize_words_names_marks_in_order() -> None:
    words = tokenize_words("Hello, world! It's me.")

    assert [w.word for w in words] == ["Hello", "world", "It's", "me"]
    assert [w.mark_name for w in words] == ["w0", "w1", "w2", "w3"]
    assert words[1].start_offset == 7
    assert words[1].end_offset == 12


def test_escape_markup_escapes_ampersand_once() -> None:
    assert escape_markup("a & b < c > \"d\" 'e'") == "a &amp; b &lt; c &gt; &quot;d&quot; &apos;e&apos;"


def test_inject_marks_wraps_and_marks_each_word() -> None:
    ssml, word_map = inject_marks("Hello world")

    assert ssml == '<speak><mark name="w0"/>Hello <mark name="w1"/>world</speak>'
    assert [(w.start_offset, w.end_offset) for w in word_map] == [(0, 5), (6, 11)]


def test_inject_marks_escapes_special_characters() -> None:
    ssml, word_map = inject_marks("Tom & Jerry <3")

    assert "&amp;" in ssml
    assert "&lt;" in ssml
    assert "<3" not in ssml
    assert [w.word for w in word_map] == ["Tom", "Jerry", "3"]


@pytest.mark.parametrize(
    "text",
    [
        "Hello world",
        "  leading and trailing  ",
        "Punctuation, everywhere; really?!",
        "Tom & Jerry's \"quoted\" <tag>",
        "multi\nline\ttext",
        "",
    ],
)
def test_marks_map_back_to_original_words(text: str) -> None:
    ssml, word_map = inject_marks(text)

    # Every word of the original text is recoverable from its offsets
    for timing in word_map:
        assert text[timing.start_offset : timing.end_offset] == timing.word

    # Removing the inserted tags and unescaping yields the original text
    without_marks: str = re.sub(r'<mark name="w\d+"/>', "", ssml)
    inner: str = without_marks.removeprefix("<speak>").removesuffix("</speak>")
    for char, entity in (("<", "&lt;"), (">", "&gt;"), ('"', "&quot;"), ("'", "&apos;"), ("&", "&amp;")):
        inner = inner.replace(entity, char)
    assert inner == text


def test_detect_ssml() -> None:
    assert detect_ssml("<speak>Hello</speak>")
    assert detect_ssml('Say <break time="1s"/> now')
    assert detect_ssml("<PROSODY rate='slow'>x</PROSODY>")
    assert not detect_ssml("1 < 2 and 3 > 2")
    assert not detect_ssml("<speaker>not ssml</speaker>")


def test_strip_markup_collapses_whitespace_and_decodes_entities() -> None:
    assert strip_markup("<speak>Tom &amp; <emphasis>Jerry</emphasis>\n</speak>") == "Tom & Jerry"


def test_prepare_text_plain_input() -> None:
    prepared = prepare_text("Hello world")

    assert prepared.degraded is False
    assert prepared.text == "Hello world"
    assert prepared.ssml.startswith("<speak>")
    assert len(prepared.word_map) == 2


def test_prepare_text_degrades_ssml_input() -> None:
    prepared = prepare_text('<speak>Hello <break time="500ms"/> world</speak>')

    assert prepared.degraded is True
    assert prepared.text == "Hello world"
    assert [w.word for w in prepared.word_map] == ["Hello", "world"]
    assert "<break" not in prepared.ssml


def test_extract_speech_marks_converts_and_sorts() -> None:
    _, word_map = inject_marks("Hello big world")
    timepoints = [
        Timepoint(mark_name="w2", time_seconds=0.9),
        Timepoint(mark_name="w0", time_seconds=0.0),
        Timepoint(mark_name="w1", time_seconds=0.4204),
    ]

    marks = extract_speech_marks(timepoints, word_map)

    assert marks == [
        SpeechMark(time_ms=0, start_offset=0, end_offset=5, value="Hello"),
        SpeechMark(time_ms=420, start_offset=6, end_offset=9, value="big"),
        SpeechMark(time_ms=900, start_offset=10, end_offset=15, value="world"),
    ]


def test_extract_speech_marks_orders_equal_times_by_position() -> None:
    _, word_map = inject_marks("a b")
    timepoints = [Timepoint(mark_name="w1", time_seconds=0.1), Timepoint(mark_name="w0", time_seconds=0.1)]

    marks = extract_speech_marks(timepoints, word_map)

    assert [m.value for m in marks] == ["a", "b"]


def test_extract_speech_marks_drops_unknown_marks(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="SpeechSync")
    _, word_map = inject_marks("Hello")

    marks = extract_speech_marks(
        [Timepoint(mark_name="w0", time_seconds=0.0), Timepoint(mark_name="intro", time_seconds=0.2)], word_map
    )

    assert len(marks) == 1
    assert any("unknown mark" in rec.message for rec in caplog.records)
