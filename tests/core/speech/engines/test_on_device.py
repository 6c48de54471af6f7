from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from core.speech.engines import on_device
from core.speech.engines.on_device import OnDeviceProvider
from core.speech.interface import TTSInitializationError, TTSProviderError
from models.config_models import ProviderSettings
from models.speech_models import SynthesisRequest

VOICES = [
    SimpleNamespace(id="voice.en", name="Samantha", languages=["en_US"]),
    SimpleNamespace(id="voice.ja", name="Kyoko", languages=["ja_JP"]),
]


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    fake = MagicMock()
    fake.getProperty.return_value = VOICES
    monkeypatch.setattr(on_device.pyttsx3, "init", lambda: fake)
    return fake


def _provider(settings: ProviderSettings | None = None) -> OnDeviceProvider:
    provider = OnDeviceProvider()
    provider.initialize(settings)
    return provider


def test_initialize_selects_configured_voice(engine: MagicMock) -> None:
    provider = _provider(ProviderSettings(VOICE="ja", RATE_WPM=180))

    engine.setProperty.assert_any_call("voice", "voice.ja")
    assert provider.words_per_minute == 180
    assert provider.get_capabilities().owns_playback


def test_initialize_without_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    def no_engine():
        raise RuntimeError("no driver")

    monkeypatch.setattr(on_device.pyttsx3, "init", no_engine)

    provider = OnDeviceProvider()
    with pytest.raises(TTSInitializationError, match="No speech engine"):
        provider.initialize(None)
    assert not provider.is_initialized


def test_unknown_voice_keeps_default(engine: MagicMock) -> None:
    provider = _provider()

    assert provider._select_voice("klingon") is False
    engine.setProperty.assert_not_called()


@pytest.mark.asyncio
async def test_speak_sets_rate_and_volume(engine: MagicMock) -> None:
    provider = _provider(ProviderSettings(RATE_WPM=200))

    await provider.speak(SynthesisRequest(text="Hello world", rate=1.5, volume=0.5))

    engine.setProperty.assert_any_call("rate", 300)
    engine.setProperty.assert_any_call("volume", 0.5)
    engine.say.assert_called_once_with("Hello world")
    engine.runAndWait.assert_called_once()
    assert not provider.is_speaking


@pytest.mark.asyncio
async def test_speak_wraps_engine_errors(engine: MagicMock) -> None:
    engine.runAndWait.side_effect = RuntimeError("run loop already started")
    provider = _provider()

    with pytest.raises(TTSProviderError, match="Speech engine failed"):
        await provider.speak(SynthesisRequest(text="Hello"))
    assert not provider.is_speaking


@pytest.mark.asyncio
async def test_stop_only_while_speaking(engine: MagicMock) -> None:
    provider = _provider()

    await provider.stop()
    engine.stop.assert_not_called()

    provider._speaking = True
    await provider.pause()
    engine.stop.assert_called_once()


@pytest.mark.asyncio
async def test_destroy_drops_engine(engine: MagicMock) -> None:
    provider = _provider()

    await provider.destroy()

    assert provider._engine is None
    assert not provider.is_initialized
