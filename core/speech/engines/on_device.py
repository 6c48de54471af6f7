"""On-device speech through the platform engine (SAPI5, NSSpeechSynthesizer, eSpeak) via pyttsx3.

The platform engine plays audio itself and reports no timing data usable for highlighting,
so this provider owns playback and declares no word boundary support. pyttsx3 cannot pause
mid-utterance: pausing stops the utterance and resuming speaks it again from the start.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Final

import pyttsx3

from core.speech.interface import SpeechProvider, TTSInitializationError, TTSProviderError
from models.speech_models import ProviderCapabilities
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ProviderSettings
    from models.speech_models import SynthesisRequest

__all__: list[str] = ["OnDeviceProvider"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_WORDS_PER_MINUTE: Final[int] = 200


class OnDeviceProvider(SpeechProvider):
    """Provider that speaks through the operating system's speech engine."""

    CAPABILITIES = ProviderCapabilities(
        supports_pause=True,
        supports_resume=False,
        supports_word_boundary=False,
        supports_voice_selection=True,
        supports_rate_control=True,
        supports_pitch_control=False,
        max_text_length=None,
        owns_playback=True,
    )

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self._engine: Any = None
        self.words_per_minute: int = DEFAULT_WORDS_PER_MINUTE
        self._speaking: bool = False

    @staticmethod
    def fetch_provider_name() -> str:
        return "on_device"

    def initialize(self, settings: ProviderSettings | None) -> None:
        super().initialize(settings)
        self.words_per_minute = int(getattr(settings, "RATE_WPM", 0) or DEFAULT_WORDS_PER_MINUTE)
        try:
            self._engine = pyttsx3.init()
        except (RuntimeError, OSError, ImportError) as err:
            self._initialized = False
            msg: str = f"No speech engine available on this device: {err}"
            raise TTSInitializationError(msg, provider_id=self.provider_id) from err
        if self.config.voice:
            self._select_voice(self.config.voice)

    def _select_voice(self, wanted: str) -> bool:
        """Select the first installed voice whose id, name or language contains `wanted`."""
        needle: str = wanted.lower()
        for voice in self._engine.getProperty("voices") or []:
            voice_id: str = getattr(voice, "id", "") or ""
            name: str = getattr(voice, "name", "") or ""
            languages: str = " ".join(str(lang) for lang in getattr(voice, "languages", []) or [])
            if needle in voice_id.lower() or needle in name.lower() or needle in languages.lower():
                self._engine.setProperty("voice", voice_id)
                logger.debug("Selected voice '%s'", voice_id)
                return True
        logger.warning("Voice '%s' is not installed; using the default voice", wanted)
        return False

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    async def speak(self, request: SynthesisRequest) -> None:
        """Speak the text and return when the engine finishes or is stopped."""
        self._ensure_initialized()
        self.validate_request(request)
        if request.voice:
            self._select_voice(request.voice)
        self._engine.setProperty("rate", round(self.words_per_minute * request.rate))
        self._engine.setProperty("volume", request.volume)

        self._speaking = True
        try:
            self._engine.say(request.text)
            # runAndWait blocks until the queue is spoken or stop() is called
            await asyncio.to_thread(self._engine.runAndWait)
        except RuntimeError as err:
            msg: str = f"Speech engine failed: {err}"
            raise TTSProviderError(msg, provider_id=self.provider_id) from err
        finally:
            self._speaking = False

    async def pause(self) -> None:
        # pyttsx3 has no pause; the utterance is cut and restarted on resume
        await self.stop()

    async def stop(self) -> None:
        if self._engine is not None and self._speaking:
            self._engine.stop()
            logger.debug("Speech engine stopped")

    async def destroy(self) -> None:
        await self.stop()
        self._engine = None
        await super().destroy()
