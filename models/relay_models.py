"""Wire models for the relay synthesis providers.

The speech relay server speaks camelCase JSON, as does the Google Cloud
Text-to-Speech REST API.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, LetterCase, config, dataclass_json

__all__: list[str] = [
    "CloudSynthesisResponse",
    "CloudTimepoint",
    "RelayMark",
    "RelayMetadata",
    "RelaySynthesisRequest",
    "RelaySynthesisResponse",
    "RelayVoice",
]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RelaySynthesisRequest(DataClassJsonMixin):
    text: str
    include_timing_marks: bool = True
    voice: str | None = field(default=None, metadata=config(exclude=lambda x: x is None))
    language: str | None = field(default=None, metadata=config(exclude=lambda x: x is None))
    provider: str | None = field(default=None, metadata=config(exclude=lambda x: x is None))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RelayMark(DataClassJsonMixin):
    time_ms: int
    start_offset: int
    end_offset: int
    value: str
    type: str = "word"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RelayMetadata(DataClassJsonMixin):
    provider_id: str = ""
    voice: str | None = None
    duration_seconds: float | None = None
    char_count: int = 0
    cached: bool = False


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RelaySynthesisResponse(DataClassJsonMixin):
    """Response of `POST <endpoint>/synthesize`. `audio` is base64 encoded."""

    audio: str
    content_type: str = "audio/mpeg"
    marks: list[RelayMark] = field(default_factory=list)
    metadata: RelayMetadata = field(default_factory=RelayMetadata)

    def __repr__(self) -> str:
        # base64 fields can be very large, so exclude them from the representation
        return f"RelaySynthesisResponse(content_type={self.content_type}, marks={len(self.marks)})"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RelayVoice(DataClassJsonMixin):
    id: str
    name: str = ""
    language: str = ""
    gender: str | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class CloudTimepoint(DataClassJsonMixin):
    mark_name: str
    time_seconds: float = 0.0


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class CloudSynthesisResponse(DataClassJsonMixin):
    """Response of the Google Cloud `text:synthesize` REST call."""

    audio_content: str
    timepoints: list[CloudTimepoint] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"CloudSynthesisResponse(timepoints={len(self.timepoints)})"
