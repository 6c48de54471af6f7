"""Speech synthesis providers, audio playback and word boundary scheduling."""

from core.speech.audio_player import AudioPlayer, AudioPlayerError
from core.speech.interface import (
    SpeechProvider,
    TTSAuthenticationError,
    TTSExceptionError,
    TTSInitializationError,
    TTSInvalidRequestError,
    TTSNotSupportedError,
    TTSProviderError,
    TTSRateLimitExceededError,
)
from core.speech.manager import SpeechManager
from core.speech.playback_scheduler import PlaybackScheduler
from core.speech.service import SpeechSynthesisService

__all__: list[str] = [
    "AudioPlayer",
    "AudioPlayerError",
    "PlaybackScheduler",
    "SpeechManager",
    "SpeechProvider",
    "SpeechSynthesisService",
    "TTSAuthenticationError",
    "TTSExceptionError",
    "TTSInitializationError",
    "TTSInvalidRequestError",
    "TTSNotSupportedError",
    "TTSProviderError",
    "TTSRateLimitExceededError",
]
