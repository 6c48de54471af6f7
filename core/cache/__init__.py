"""Synthesis cache package.

Provides an in-memory cache of synthesized audio and timing marks.
"""

from __future__ import annotations

from core.cache.synthesis_cache import CacheStats, SynthesisCache, generate_cache_key

__all__: list[str] = ["CacheStats", "SynthesisCache", "generate_cache_key"]
