from __future__ import annotations

from typing import TYPE_CHECKING

import core.speech.engines  # noqa: F401  # registers the providers
from core.cache.synthesis_cache import SynthesisCache
from core.catalog.resolver import CatalogResolver
from core.speech.audio_player import AudioPlayer
from core.speech.service import SpeechSynthesisService
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from config.loader import Config
    from models.config_models import ProviderSettings


__all__: list[str] = ["SpeechManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class SpeechManager:
    """SpeechManager assembles the synthesis service from the configuration.

    It builds the catalog resolver, the synthesis cache and the audio player, binds the
    configured provider and shuts everything down again.
    """

    def __init__(self, config: Config) -> None:
        """Initialize the SpeechManager with the given configuration.

        Args:
            config (Config): The configuration object containing speech settings.
        """
        logger.debug("Initializing SpeechManager with config")
        self.config: Config = config

        self.catalog_resolver = CatalogResolver(
            scopes=config.CATALOG.SCOPES,
            default_language=config.CATALOG.DEFAULT_LANGUAGE,
        )
        self.cache: SynthesisCache | None = SynthesisCache.from_config(config)
        self.player = AudioPlayer()
        self.service = SpeechSynthesisService(
            player=self.player,
            catalog_resolver=self.catalog_resolver,
            cache=self.cache,
            poll_interval=config.PLAYBACK.POLL_INTERVAL,
            rate=config.PLAYBACK.RATE,
            volume=config.PLAYBACK.VOLUME,
        )
        self._initialized: bool = False

    @property
    def provider_settings(self) -> ProviderSettings:
        """Settings section of the configured provider, with playback defaults filled in."""
        settings: ProviderSettings = getattr(self.config, self.config.GENERAL.PROVIDER.upper())
        if not settings.LANGUAGE:
            settings.LANGUAGE = self.config.PLAYBACK.LANGUAGE
        if not settings.VOICE:
            settings.VOICE = self.config.PLAYBACK.VOICE
        return settings

    def load_catalogs(self) -> int:
        """Load every catalog file listed in the CATALOG section.

        Returns:
            int: Number of catalogs loaded.

        Raises:
            CatalogError: If a file cannot be loaded.
        """
        total: int = 0
        for scope, paths in self.config.CATALOG.FILES.items():
            for path in paths:
                total += self.catalog_resolver.load_file(scope, path)
        return total

    async def initialize(self) -> None:
        """Load catalogs and bind the configured provider.

        Raises:
            CatalogError: If a catalog file cannot be loaded.
            TTSInitializationError: If the provider cannot be initialized.
        """
        if self._initialized:
            logger.warning("SpeechManager is already initialized")
            return
        logger.info("SpeechManager initialization started")

        count: int = self.load_catalogs()
        if count:
            logger.info("%d catalogs loaded", count)
        await self.service.initialize(self.config.GENERAL.PROVIDER, self.provider_settings)
        self._initialized = True

    async def close(self) -> None:
        """Stop playback and release the provider and the audio device."""
        logger.info("Shutting down speech service")
        await self.service.destroy()
        if self.cache is not None:
            stats = self.cache.stats()
            logger.debug("Cache: %d hits, %d misses, %d entries", stats.hits, stats.misses, stats.size)
        self._initialized = False
        logger.info("SpeechManager closed successfully")
