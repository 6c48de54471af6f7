"""Google Cloud Text-to-Speech through its REST API.

Word timing comes from SSML `<mark/>` timepoints (`enableTimePointing: ["SSML_MARK"]`, only
available on the v1beta1 endpoint). The provider therefore declares
`requires_mark_injection`: callers send SSML annotated by `handlers.ssml_marks` and resolve
the returned timepoints against their word map.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from core.speech.engines.relay_core import RelayProvider
from core.speech.interface import (
    TTSAuthenticationError,
    TTSExceptionError,
    TTSInitializationError,
    TTSInvalidRequestError,
    TTSRateLimitExceededError,
)
from handlers.ssml_marks import detect_ssml
from models.relay_models import CloudSynthesisResponse
from models.speech_models import DEFAULT_LANGUAGE, ProviderCapabilities, SynthesisMetadata, SynthesisResult, Timepoint
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from handlers.async_comm import AsyncCommError
    from models.config_models import ProviderSettings
    from models.speech_models import SynthesisRequest

__all__: list[str] = ["GoogleCloudProvider"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_ENDPOINT: Final[str] = "https://texttospeech.googleapis.com/v1beta1"
DEFAULT_VOICE: Final[str] = "en-US-Wavenet-A"
DEFAULT_SAMPLE_RATE: Final[int] = 24000

# audioEncoding -> MIME type of the returned audio
ENCODING_CONTENT_TYPES: Final[dict[str, str]] = {
    "MP3": "audio/mpeg",
    "LINEAR16": "audio/wav",
    "OGG_OPUS": "audio/ogg",
}

# google.rpc status names reported in the JSON error body
_STATUS_ERRORS: Final[dict[str, type[TTSExceptionError]]] = {
    "UNAUTHENTICATED": TTSAuthenticationError,
    "PERMISSION_DENIED": TTSAuthenticationError,
    "RESOURCE_EXHAUSTED": TTSRateLimitExceededError,
    "INVALID_ARGUMENT": TTSInvalidRequestError,
}


class GoogleCloudProvider(RelayProvider):
    """Provider backed by Google Cloud Text-to-Speech."""

    CAPABILITIES = ProviderCapabilities(
        supports_pause=True,
        supports_resume=False,
        supports_word_boundary=True,
        supports_voice_selection=True,
        supports_rate_control=True,
        supports_pitch_control=True,
        max_text_length=5000,
        requires_mark_injection=True,
    )

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self.audio_encoding: str = "MP3"
        self.sample_rate: int = DEFAULT_SAMPLE_RATE

    @staticmethod
    def fetch_provider_name() -> str:
        return "google_cloud"

    def initialize(self, settings: ProviderSettings | None) -> None:
        super().initialize(settings)
        if not self.config.api_key:
            self._initialized = False
            msg = "API_KEY is required for the Google Cloud provider"
            raise TTSInitializationError(msg, provider_id=self.provider_id)

        self.config.endpoint = self.config.endpoint or DEFAULT_ENDPOINT
        encoding: str = str(getattr(settings, "AUDIO_ENCODING", "MP3") or "MP3").upper()
        if encoding not in ENCODING_CONTENT_TYPES:
            self._initialized = False
            msg: str = f"Unsupported AUDIO_ENCODING '{encoding}'; expected one of {list(ENCODING_CONTENT_TYPES)}"
            raise TTSInitializationError(msg, provider_id=self.provider_id)
        self.audio_encoding = encoding
        self.sample_rate = int(getattr(settings, "SAMPLE_RATE", DEFAULT_SAMPLE_RATE) or DEFAULT_SAMPLE_RATE)

    def _build_body(self, request: SynthesisRequest) -> dict[str, Any]:
        language: str = request.language or self.config.language or DEFAULT_LANGUAGE
        voice: str = request.voice or self.config.voice or DEFAULT_VOICE
        is_ssml: bool = detect_ssml(request.text)
        audio_config: dict[str, Any] = {
            "audioEncoding": self.audio_encoding,
            "sampleRateHertz": self.sample_rate,
        }
        if request.pitch is not None:
            audio_config["pitch"] = request.pitch

        body: dict[str, Any] = {
            "input": {"ssml": request.text} if is_ssml else {"text": request.text},
            "voice": {"languageCode": language, "name": voice},
            "audioConfig": audio_config,
        }
        # Timepoints are only reported for SSML input
        if is_ssml and request.include_marks:
            body["enableTimePointing"] = ["SSML_MARK"]
        return body

    async def _synthesize_remote(self, request: SynthesisRequest) -> SynthesisResult:
        body: dict[str, Any] = self._build_body(request)
        response: CloudSynthesisResponse = await self._api_request(
            "post",
            f"{self.config.endpoint}/text:synthesize",
            CloudSynthesisResponse,
            params={"key": self.config.api_key},
            data=body,
        )
        audio: bytes = self.decode_audio(response.audio_content)
        timepoints: list[Timepoint] = [
            Timepoint(mark_name=point.mark_name, time_seconds=point.time_seconds) for point in response.timepoints
        ]
        logger.debug("Cloud synthesis: %d bytes, %d timepoints", len(audio), len(timepoints))
        return SynthesisResult(
            audio=audio,
            content_type=ENCODING_CONTENT_TYPES[self.audio_encoding],
            timepoints=timepoints,
            metadata=SynthesisMetadata(
                provider_id=self.provider_id,
                voice=body["voice"]["name"],
                char_count=len(request.text),
            ),
        )

    def map_comm_error(self, err: AsyncCommError) -> TTSExceptionError:
        """Prefer the status name from the error body over the HTTP status."""
        payload: Any = err.payload
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            status_name: str = str(payload["error"].get("status", ""))
            error_cls: type[TTSExceptionError] | None = _STATUS_ERRORS.get(status_name)
            if error_cls is not None:
                message: str = str(payload["error"].get("message", err.msg))
                return error_cls(f"{status_name}: {message}", provider_id=self.provider_id)
        return super().map_comm_error(err)
