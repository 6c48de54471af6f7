"""Synthesis through a speech relay server.

The relay server fronts one or more commercial synthesis services and returns audio plus
word marks in a single JSON response:

    POST <endpoint>/synthesize
    {text, voice?, language?, provider?, includeTimingMarks}
    -> {audio: base64, contentType, marks: [{timeMs, type, startOffset, endOffset, value}],
        metadata: {providerId, voice, durationSeconds, charCount, cached}}

Playback rate is applied locally by the player, so it is not sent to the server and cached
server responses stay valid for every rate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from core.speech.engines.relay_core import RelayProvider
from core.speech.interface import TTSExceptionError, TTSInitializationError
from handlers.async_comm import AsyncCommError
from handlers.speech_marks import estimate_speech_marks, validate_speech_marks
from models.relay_models import RelaySynthesisRequest, RelaySynthesisResponse, RelayVoice
from models.speech_models import ProviderCapabilities, SpeechMark, SynthesisMetadata, SynthesisResult
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ProviderSettings
    from models.speech_models import SynthesisRequest

__all__: list[str] = ["ServerRelayProvider"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

VALIDATE_TIMEOUT: Final[float] = 5.0


class ServerRelayProvider(RelayProvider):
    """Provider backed by a speech relay server."""

    CAPABILITIES = ProviderCapabilities(
        supports_pause=True,
        # The server cannot seek, so resuming restarts the prompt
        supports_resume=False,
        supports_word_boundary=True,
        supports_voice_selection=True,
        supports_rate_control=True,
        supports_pitch_control=False,
        max_text_length=3000,
    )

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self.server_provider: str | None = None
        self.validate_endpoint: bool = False
        self.words_per_minute: int = 0

    @staticmethod
    def fetch_provider_name() -> str:
        return "server_relay"

    def initialize(self, settings: ProviderSettings | None) -> None:
        super().initialize(settings)
        if not self.config.endpoint:
            self._initialized = False
            msg = "ENDPOINT is required for the server relay provider"
            raise TTSInitializationError(msg, provider_id=self.provider_id)
        self.server_provider = getattr(settings, "SERVER_PROVIDER", None) or None
        self.validate_endpoint = bool(getattr(settings, "VALIDATE_ENDPOINT", False))
        self.words_per_minute = int(getattr(settings, "RATE_WPM", 0) or 0)

    def _default_headers(self) -> dict[str, str]:
        headers: dict[str, str] = super()._default_headers()
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    async def async_init(self) -> None:
        """Check that the server answers before the first request, if enabled."""
        if not self.validate_endpoint:
            return
        try:
            await self._api_request("get", f"{self.config.endpoint}/voices", total_timeout=VALIDATE_TIMEOUT)
        except (AsyncCommError, TTSExceptionError) as err:
            msg: str = f"Relay server at '{self.config.endpoint}' is not reachable: {err}"
            raise TTSInitializationError(msg, provider_id=self.provider_id) from err
        logger.info("Relay server at '%s' is reachable", self.config.endpoint)

    async def get_voices(self, language: str | None = None) -> list[RelayVoice]:
        """List voices offered by the relay server."""
        self._ensure_initialized()
        params: dict[str, str] | None = {"language": language} if language else None
        try:
            response = await self._api_request("get", f"{self.config.endpoint}/voices", params=params)
        except AsyncCommError as err:
            raise self.map_comm_error(err) from err
        items = response.get("voices", []) if isinstance(response, dict) else response or []
        return [RelayVoice.from_dict(item, infer_missing=True) for item in items]

    async def _synthesize_remote(self, request: SynthesisRequest) -> SynthesisResult:
        body = RelaySynthesisRequest(
            text=request.text,
            include_timing_marks=request.include_marks,
            voice=request.voice or self.config.voice,
            language=request.language or self.config.language,
            provider=self.server_provider,
        )
        response: RelaySynthesisResponse = await self._api_request(
            "post", f"{self.config.endpoint}/synthesize", RelaySynthesisResponse, data=body.to_dict()
        )
        audio: bytes = self.decode_audio(response.audio)
        marks: list[SpeechMark] = self._convert_marks(response, request)
        metadata = SynthesisMetadata(
            provider_id=response.metadata.provider_id or self.provider_id,
            voice=response.metadata.voice or body.voice,
            duration_seconds=response.metadata.duration_seconds,
            char_count=response.metadata.char_count or len(request.text),
            cached=response.metadata.cached,
        )
        logger.debug("Relay synthesis: %d bytes, %d marks", len(audio), len(marks))
        return SynthesisResult(audio=audio, content_type=response.content_type, marks=marks, metadata=metadata)

    def _convert_marks(self, response: RelaySynthesisResponse, request: SynthesisRequest) -> list[SpeechMark]:
        if not request.include_marks:
            return []
        marks: list[SpeechMark] = [
            SpeechMark(
                time_ms=mark.time_ms,
                start_offset=mark.start_offset,
                end_offset=mark.end_offset,
                value=mark.value,
            )
            for mark in response.marks
            if mark.type == "word"
        ]
        if not marks and self.words_per_minute > 0:
            logger.info("Relay returned no marks; estimating at %d words per minute", self.words_per_minute)
            return estimate_speech_marks(request.text, self.words_per_minute)

        marks.sort(key=lambda mark: (mark.time_ms, mark.start_offset))
        problems: list[str] = validate_speech_marks(marks, len(request.text))
        if problems:
            logger.warning("Relay returned %d invalid marks; they are discarded", len(problems))
            for problem in problems:
                logger.debug(problem)
            return [m for m in marks if 0 <= m.start_offset < m.end_offset <= len(request.text) and m.time_ms >= 0]
        return marks
