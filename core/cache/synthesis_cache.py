"""In-memory cache of synthesis results.

Relay synthesis is slow and often billed per character, and the same prompt is commonly
replayed (resume without true resume restarts playback, users press play twice). Results are
cached under a SHA-256 key derived from everything that affects the produced audio.
"""

from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, ClassVar

from models.speech_models import SynthesisResult
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from config.loader import Config

__all__: list[str] = ["CacheStats", "SynthesisCache", "generate_cache_key"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def generate_cache_key(
    *,
    provider: str,
    text: str,
    voice: str | None = None,
    language: str | None = None,
    rate: float = 1.0,
    audio_format: str = "",
) -> str:
    """Build the cache key for a synthesis request.

    Rate is formatted to two decimals so float noise does not split entries.

    Returns:
        str: Hex SHA-256 digest of the key components.
    """
    raw: str = f"tts:{provider}:{voice or 'default'}:{language or 'default'}:{rate:.2f}:{audio_format}:{text}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    max_items: int

    @property
    def hit_rate(self) -> float:
        total: int = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass
class _CacheEntry:
    result: SynthesisResult
    expires_at: float


class SynthesisCache:
    """TTL and LRU bounded cache of `SynthesisResult` objects.

    Attributes:
        DEFAULT_MAX_ITEMS (ClassVar[int]): Capacity used when none is configured.
        DEFAULT_TTL_SECONDS (ClassVar[float]): Entry lifetime used when none is configured.
    """

    DEFAULT_MAX_ITEMS: ClassVar[int] = 100
    DEFAULT_TTL_SECONDS: ClassVar[float] = 86400.0

    def __init__(
        self,
        *,
        max_items: int = DEFAULT_MAX_ITEMS,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_items <= 0:
            msg: str = f"max_items must be positive, got {max_items}"
            raise ValueError(msg)
        self.max_items: int = max_items
        self.ttl_seconds: float = ttl_seconds
        self._clock: Callable[[], float] = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._hits: int = 0
        self._misses: int = 0

    @classmethod
    def from_config(cls, config: Config) -> SynthesisCache | None:
        """Build the cache from the CACHE section, or None when caching is disabled."""
        if not config.CACHE.ENABLED:
            logger.info("Synthesis cache disabled")
            return None
        return cls(max_items=config.CACHE.MAX_ITEMS, ttl_seconds=config.CACHE.TTL_SECONDS)

    def get(self, key: str) -> SynthesisResult | None:
        """Return a cached result marked as cached, or None on a miss or expiry."""
        entry: _CacheEntry | None = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key[:12])
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        return replace(entry.result, metadata=replace(entry.result.metadata, cached=True))

    def set(self, key: str, result: SynthesisResult, ttl_seconds: float | None = None) -> None:
        ttl: float = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = _CacheEntry(result=result, expires_at=self._clock() + ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_items:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache entry evicted: %s", evicted[:12])

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries), max_items=self.max_items)
