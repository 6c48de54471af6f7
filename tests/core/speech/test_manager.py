"""Unit tests for core.speech.manager module."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from core.catalog.resolver import CatalogError
from core.speech.manager import SpeechManager
from models.config_models import Config

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def config() -> Config:
    config = Config()
    config.GENERAL.PROVIDER = "gtts"
    config.PLAYBACK.RATE = 1.25
    config.PLAYBACK.VOLUME = 0.5
    config.PLAYBACK.LANGUAGE = "de-DE"
    config.PLAYBACK.VOICE = "Marlene"
    return config


def test_manager_builds_service_from_config(config: Config) -> None:
    manager = SpeechManager(config)

    assert manager.service.rate == 1.25
    assert manager.service.volume == 0.5
    assert manager.service.player is manager.player
    assert manager.service.catalog_resolver is manager.catalog_resolver
    assert manager.service.cache is manager.cache
    assert manager.catalog_resolver.scopes == ("assessment", "item")


def test_cache_can_be_disabled(config: Config) -> None:
    config.CACHE.ENABLED = False

    assert SpeechManager(config).service.cache is None


def test_provider_settings_inherit_playback_defaults(config: Config) -> None:
    config.GTTS.LANGUAGE = "ja-JP"

    settings = SpeechManager(config).provider_settings

    assert settings is config.GTTS
    assert settings.LANGUAGE == "ja-JP"
    assert settings.VOICE == "Marlene"


def test_load_catalogs(config: Config, tmp_path: Path) -> None:
    path = tmp_path / "assessment.json"
    path.write_text(
        json.dumps([{"identifier": "eq1", "cards": [{"catalog": "spoken", "content": "x squared"}]}]),
        encoding="utf-8",
    )
    config.CATALOG.FILES = {"assessment": [str(path)]}
    manager = SpeechManager(config)

    assert manager.load_catalogs() == 1
    assert manager.catalog_resolver.resolve("eq1") == "x squared"


@pytest.mark.asyncio
async def test_initialize_binds_configured_provider_once(config: Config) -> None:
    manager = SpeechManager(config)
    bind = AsyncMock()
    manager.service.initialize = bind  # type: ignore[method-assign]

    await manager.initialize()
    await manager.initialize()

    bind.assert_awaited_once_with("gtts", config.GTTS)
    assert config.GTTS.LANGUAGE == "de-DE"


@pytest.mark.asyncio
async def test_initialize_fails_on_missing_catalog(config: Config, tmp_path: Path) -> None:
    config.CATALOG.FILES = {"item": [str(tmp_path / "missing.json")]}
    manager = SpeechManager(config)
    manager.service.initialize = AsyncMock()  # type: ignore[method-assign]

    with pytest.raises(CatalogError):
        await manager.initialize()
    manager.service.initialize.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_destroys_service(config: Config) -> None:
    manager = SpeechManager(config)
    manager.service.initialize = AsyncMock()  # type: ignore[method-assign]
    manager.service.destroy = AsyncMock()  # type: ignore[method-assign]
    await manager.initialize()

    await manager.close()

    manager.service.destroy.assert_awaited_once()
    assert manager._initialized is False
