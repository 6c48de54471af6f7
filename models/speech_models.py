"""Data models shared by the synthesis providers, the scheduler and the service.

Covers synthesis requests and results, word timing records, speech marks,
provider capability descriptors and the playback state machine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final, Literal

__all__: list[str] = [
    "DEFAULT_LANGUAGE",
    "MAX_PITCH",
    "MAX_RATE",
    "MAX_VOLUME",
    "MIN_PITCH",
    "MIN_RATE",
    "MIN_VOLUME",
    "PlaybackState",
    "PlaybackStatus",
    "ProviderCapabilities",
    "SpeechMark",
    "SynthesisMetadata",
    "SynthesisRequest",
    "SynthesisResult",
    "Timepoint",
    "WordTiming",
]

DEFAULT_LANGUAGE: Final[str] = "en-US"

MIN_RATE: Final[float] = 0.25
MAX_RATE: Final[float] = 4.0
MIN_VOLUME: Final[float] = 0.0
MAX_VOLUME: Final[float] = 1.0
MIN_PITCH: Final[float] = -20.0
MAX_PITCH: Final[float] = 20.0

MarkType = Literal["word"]


class PlaybackState(StrEnum):
    """States of the synthesis service.

    IDLE -> INITIALIZING -> READY -> SPEAKING <-> PAUSED -> STOPPED, with ERROR reachable
    from any provider failure.
    """

    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    SPEAKING = "speaking"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class SynthesisRequest:
    """A single synthesis call.

    Attributes:
        text (str): Text (or SSML) to synthesize.
        voice (str | None): Provider specific voice identifier.
        language (str | None): BCP-47 language code.
        rate (float): Playback rate, 0.25-4.0.
        volume (float): Output volume, 0.0-1.0.
        pitch (float | None): Pitch adjustment in semitones, -20 to 20.
        catalog_id (str | None): Catalog identifier used to look up an alternate spoken form.
        include_marks (bool): Whether word timing marks should be requested.
    """

    text: str
    voice: str | None = None
    language: str | None = None
    rate: float = 1.0
    volume: float = 1.0
    pitch: float | None = None
    catalog_id: str | None = None
    include_marks: bool = True


@dataclass(frozen=True)
class WordTiming:
    """A word located in the original text together with the marker name injected before it."""

    word: str
    start_offset: int
    end_offset: int
    mark_name: str


@dataclass(frozen=True)
class Timepoint:
    """Raw timing data returned by a provider for one injected marker."""

    mark_name: str
    time_seconds: float


@dataclass(frozen=True)
class SpeechMark:
    """A timestamped pointer from synthesized audio back to a range in the original text.

    Times are always recorded at the 1.0x reference rate.
    """

    time_ms: int
    start_offset: int
    end_offset: int
    value: str
    type: MarkType = "word"

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


@dataclass(frozen=True)
class ProviderCapabilities:
    """Static declaration of what a synthesis provider supports.

    Attributes:
        supports_pause (bool): Playback can be paused.
        supports_resume (bool): Paused playback can continue where it stopped.
            When False, resuming restarts from the beginning.
        supports_word_boundary (bool): The provider produces word timing marks.
        supports_voice_selection (bool): A voice can be selected per request.
        supports_rate_control (bool): The playback rate can be changed.
        supports_pitch_control (bool): The pitch can be changed.
        max_text_length (int | None): Maximum accepted text length, None when unlimited.
        owns_playback (bool): The provider plays audio itself instead of returning it.
        requires_mark_injection (bool): Timing marks are only returned for SSML carrying mark tags.
    """

    supports_pause: bool = True
    supports_resume: bool = True
    supports_word_boundary: bool = False
    supports_voice_selection: bool = False
    supports_rate_control: bool = True
    supports_pitch_control: bool = False
    max_text_length: int | None = None
    owns_playback: bool = False
    requires_mark_injection: bool = False


@dataclass
class SynthesisMetadata:
    provider_id: str
    voice: str | None = None
    duration_seconds: float | None = None
    char_count: int = 0
    cached: bool = False


@dataclass
class SynthesisResult:
    """Audio returned by a provider.

    Attributes:
        audio (bytes): Encoded audio data.
        content_type (str): MIME type of the audio data.
        marks (list[SpeechMark]): Word marks sorted by time, empty when unsupported.
        timepoints (list[Timepoint]): Raw mark timepoints of providers that need mark injection.
        metadata (SynthesisMetadata): Provider metadata.
    """

    audio: bytes
    content_type: str
    marks: list[SpeechMark] = field(default_factory=list)
    metadata: SynthesisMetadata = field(default_factory=lambda: SynthesisMetadata(provider_id=""))
    timepoints: list[Timepoint] = field(default_factory=list)

    def __repr__(self) -> str:
        # audio can be very large, so only its size is shown
        return (
            f"SynthesisResult(audio=<{len(self.audio)} bytes>, content_type={self.content_type}, "
            f"marks={len(self.marks)}, metadata={self.metadata})"
        )


@dataclass(frozen=True)
class PlaybackStatus:
    """Read-only snapshot of the active playback session."""

    state: PlaybackState
    text: str | None = None
    playback_rate: float = 1.0
    last_fired_mark_index: int = -1
    mark_count: int = 0
    started_at: float | None = None
