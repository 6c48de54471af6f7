"""Core components of SpeechSync.

This package contains the synthesis service and its providers, the accessibility
catalog resolver and the synthesis cache.
"""

from core.cache.synthesis_cache import SynthesisCache
from core.catalog.resolver import CatalogResolver
from core.speech.manager import SpeechManager
from core.speech.service import SpeechSynthesisService
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "CatalogResolver",
    "SpeechManager",
    "SpeechSynthesisService",
    "SynthesisCache",
]
