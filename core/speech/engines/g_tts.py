from __future__ import annotations

import asyncio
from io import BytesIO
from typing import TYPE_CHECKING, Final

from gtts import gTTS, gTTSError

from core.speech.interface import (
    SpeechProvider,
    TTSInvalidRequestError,
    TTSProviderError,
    TTSRateLimitExceededError,
)
from models.speech_models import ProviderCapabilities, SynthesisMetadata, SynthesisResult
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.speech_models import SynthesisRequest


__all__: list[str] = ["GoogleText2Speech"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_LANG: Final[str] = "en"


def _gtts_language(language: str | None) -> str:
    """gTTS takes bare language codes ("en", "ja"); region subtags are dropped except for Chinese."""
    if not language:
        return DEFAULT_LANG
    lowered: str = language.lower()
    if lowered.startswith("zh"):
        return "zh-TW" if lowered in ("zh-tw", "zh-hant") else "zh-CN"
    return lowered.split("-")[0]


class GoogleText2Speech(SpeechProvider):
    """Performs speech synthesis using gTTS.

    gTTS returns an mp3 stream with no timing information, so this provider never
    produces word marks. Rate and volume are applied by the player.
    """

    CAPABILITIES = ProviderCapabilities(
        supports_pause=True,
        supports_resume=True,
        supports_word_boundary=False,
        supports_voice_selection=False,
        supports_rate_control=True,
        supports_pitch_control=False,
        max_text_length=None,
    )

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()

    @staticmethod
    def fetch_provider_name() -> str:
        return "gtts"

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        self._ensure_initialized()
        self.validate_request(request)
        lang: str = _gtts_language(request.language or self.config.language)

        mp3_data = BytesIO()
        try:
            gtts: gTTS = gTTS(request.text, lang=lang)
            # gTTS performs blocking HTTP requests
            await asyncio.to_thread(gtts.write_to_fp, mp3_data)
        except ValueError as err:
            # Raised by gTTS for unsupported languages
            msg: str = f"Unsupported request: {err}"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id) from err
        except gTTSError as err:
            if getattr(getattr(err, "rsp", None), "status_code", None) == 429:
                msg = f"gTTS rate limited: {err}"
                raise TTSRateLimitExceededError(msg, provider_id=self.provider_id) from err
            msg = f"gTTS Internal Error: {err}"
            raise TTSProviderError(msg, provider_id=self.provider_id) from err
        except (AssertionError, OSError) as err:
            msg = f"gTTS Internal Error: {err}"
            raise TTSProviderError(msg, provider_id=self.provider_id) from err

        audio: bytes = mp3_data.getvalue()
        logger.debug("gTTS synthesis: %d bytes (lang=%s)", len(audio), lang)
        return SynthesisResult(
            audio=audio,
            content_type="audio/mpeg",
            metadata=SynthesisMetadata(provider_id=self.provider_id, voice=lang, char_count=len(request.text)),
        )
