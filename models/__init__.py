"""Data models for SpeechSync.

This package contains dataclass definitions for configuration, synthesis requests and results,
speech marks, provider capabilities, accessibility catalogs, relay wire payloads
and the regular expression patterns used for tokenization.
"""

from __future__ import annotations

from models.catalog_models import AccessibilityCatalog, CatalogEntry, CatalogStatistics, ResolvedCatalog
from models.config_models import Config, ProviderSettings
from models.re_models import SSML_DETECT_PATTERN, SSML_TAG_PATTERN, WHITESPACE_PATTERN, WORD_PATTERN
from models.speech_models import (
    PlaybackState,
    PlaybackStatus,
    ProviderCapabilities,
    SpeechMark,
    SynthesisMetadata,
    SynthesisRequest,
    SynthesisResult,
    Timepoint,
    WordTiming,
)

__all__: list[str] = [
    "SSML_DETECT_PATTERN",
    "SSML_TAG_PATTERN",
    "WHITESPACE_PATTERN",
    "WORD_PATTERN",
    "AccessibilityCatalog",
    "CatalogEntry",
    "CatalogStatistics",
    "Config",
    "PlaybackState",
    "PlaybackStatus",
    "ProviderCapabilities",
    "ProviderSettings",
    "ResolvedCatalog",
    "SpeechMark",
    "SynthesisMetadata",
    "SynthesisRequest",
    "SynthesisResult",
    "Timepoint",
    "WordTiming",
]
