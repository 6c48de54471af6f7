"""Synthesis provider contract, registry and error taxonomy.

Every backend derives from `SpeechProvider`. Concrete subclasses register themselves under
the name returned by `fetch_provider_name()` so they can be created from configuration.

Providers come in two shapes, declared through their capabilities:

- audio-returning providers implement `synthesize()` and leave playback to the caller;
- playback-owning providers (`owns_playback=True`) implement `speak()` and control the
  audio output themselves through `pause()`, `resume()` and `stop()`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final, Self

from models.speech_models import (
    MAX_PITCH,
    MAX_RATE,
    MAX_VOLUME,
    MIN_PITCH,
    MIN_RATE,
    MIN_VOLUME,
    ProviderCapabilities,
    SynthesisRequest,
    SynthesisResult,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ProviderSettings


__all__: list[str] = [
    "SpeechProvider",
    "TTSAuthenticationError",
    "TTSExceptionError",
    "TTSInitializationError",
    "TTSInvalidRequestError",
    "TTSNotSupportedError",
    "TTSProviderError",
    "TTSRateLimitExceededError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_TIMEOUT: Final[float] = 10.0


class TTSExceptionError(Exception):
    """Base class for synthesis errors.

    Attributes:
        provider_id (str | None): Name of the provider the error originated from.
    """

    def __init__(self, msg: str, *, provider_id: str | None = None) -> None:
        self.provider_id: str | None = provider_id
        super().__init__(msg)

    def __str__(self) -> str:
        message: str = super().__str__()
        if self.provider_id:
            return f"[{self.provider_id}] {message}"
        return message


class TTSInitializationError(TTSExceptionError):
    """Missing or invalid provider configuration. The provider instance is unusable."""


class TTSInvalidRequestError(TTSExceptionError):
    """The request was rejected before synthesis (empty text, too long, parameter out of range)."""


class TTSAuthenticationError(TTSExceptionError):
    """The backend rejected the credentials. Fatal until the provider is reconfigured."""


class TTSRateLimitExceededError(TTSExceptionError):
    """The backend throttled the request. Callers may retry with backoff; nothing here retries."""


class TTSProviderError(TTSExceptionError):
    """Any other backend failure."""


class TTSNotSupportedError(TTSExceptionError):
    """The provider does not support the requested operation."""


@dataclass
class _ProviderConfig:
    """Provider settings normalised from the INI section.

    Attributes:
        endpoint (str): Base URL of a relay backend.
        api_key (str): API key for backends that use one.
        auth_token (str): Bearer token for backends that use one.
        voice (str | None): Default voice.
        language (str | None): Default language.
        timeout (float): Request timeout in seconds.
        headers (dict[str, str]): Extra request headers.
    """

    endpoint: str = ""
    api_key: str = ""
    auth_token: str = ""
    voice: str | None = None
    language: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, settings: ProviderSettings | None) -> Self:
        provider_config: Self = cls()
        if settings is None:
            return provider_config
        provider_config.endpoint = str(getattr(settings, "ENDPOINT", "") or "").rstrip("/")
        provider_config.api_key = str(getattr(settings, "API_KEY", "") or "")
        provider_config.auth_token = str(getattr(settings, "AUTH_TOKEN", "") or "")
        provider_config.voice = getattr(settings, "VOICE", None) or None
        provider_config.language = getattr(settings, "LANGUAGE", None) or None
        provider_config.timeout = cls._parse_timeout(getattr(settings, "TIMEOUT", DEFAULT_TIMEOUT))
        provider_config.headers = dict(getattr(settings, "HEADERS", None) or {})
        return provider_config

    @staticmethod
    def _parse_timeout(timeout_value: float) -> float:
        try:
            timeout: float = float(timeout_value)
            if timeout <= 0:
                error_message = "Timeout must be a positive number."
                raise ValueError(error_message)
        except (TypeError, ValueError):
            logger.warning("Invalid timeout setting; using default value %s", DEFAULT_TIMEOUT)
            return DEFAULT_TIMEOUT
        else:
            return timeout


class SpeechProvider(ABC):
    """Base class for synthesis providers.

    Attributes:
        _registered_providers (dict[str, type[SpeechProvider]]): Concrete provider classes by name.
        CAPABILITIES (ProviderCapabilities): Capability descriptor of the provider class.
    """

    _registered_providers: ClassVar[dict[str, type[SpeechProvider]]] = {}
    CAPABILITIES: ClassVar[ProviderCapabilities] = ProviderCapabilities()

    def __init__(self) -> None:
        self._config: _ProviderConfig = _ProviderConfig()
        self._initialized: bool = False

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        # Shared bases such as the relay core do not name themselves and are not selectable
        if not getattr(cls.fetch_provider_name, "__isabstractmethod__", False):
            cls.register_provider(cls)

    @classmethod
    def get_registered(cls) -> dict[str, type[SpeechProvider]]:
        return cls._registered_providers

    @classmethod
    def register_provider(cls, provider_cls: type[SpeechProvider]) -> None:
        if not issubclass(provider_cls, SpeechProvider):
            msg = "Must be a subclass of SpeechProvider"
            raise TypeError(msg)
        name: str = provider_cls.fetch_provider_name()
        cls._registered_providers[name] = provider_cls
        logger.debug("Registered provider: %s", name)

    @classmethod
    def get_provider(cls, name: str) -> type[SpeechProvider]:
        """Look up a registered provider class by name.

        Raises:
            ValueError: If no provider is registered under the name.
        """
        try:
            return cls._registered_providers[name]
        except KeyError:
            msg: str = f"No such provider registered: {name}"
            raise ValueError(msg) from None

    @staticmethod
    @abstractmethod
    def fetch_provider_name() -> str:
        """Distinguished name of the provider, used in configuration and error messages."""
        raise NotImplementedError

    @property
    def provider_id(self) -> str:
        return self.fetch_provider_name()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> _ProviderConfig:
        return self._config

    def initialize(self, settings: ProviderSettings | None) -> None:
        """Read settings and prepare the provider (override to validate required settings).

        Raises:
            TTSInitializationError: If required settings are missing.
        """
        self._config = _ProviderConfig.from_config(settings)
        self._initialized = True
        logger.info("%s initialized", self.__class__.__name__)

    async def async_init(self) -> None:
        """Asynchronous part of initialization, e.g. reachability checks (override if necessary).

        Raises:
            TTSInitializationError: If the provider cannot be used.
        """

    def get_capabilities(self) -> ProviderCapabilities:
        return self.CAPABILITIES

    def validate_request(self, request: SynthesisRequest) -> None:
        """Reject requests the provider cannot handle, before any network call.

        The service runs this on the plain text before marks are injected. Providers run it
        again on what they send, so for mark-injecting providers `max_text_length` also
        bounds the generated SSML.

        Raises:
            TTSInvalidRequestError: If the text is empty or too long, or a parameter is out of range.
        """
        msg: str
        if not request.text or not request.text.strip():
            msg = "Text is required"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id)

        max_length: int | None = self.get_capabilities().max_text_length
        if max_length is not None and len(request.text) > max_length:
            msg = f"Text exceeds maximum length of {max_length} characters"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id)

        if not MIN_RATE <= request.rate <= MAX_RATE:
            msg = f"Rate must be between {MIN_RATE} and {MAX_RATE}, got {request.rate}"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id)

        if not MIN_VOLUME <= request.volume <= MAX_VOLUME:
            msg = f"Volume must be between {MIN_VOLUME} and {MAX_VOLUME}, got {request.volume}"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id)

        if request.pitch is not None and not MIN_PITCH <= request.pitch <= MAX_PITCH:
            msg = f"Pitch must be between {MIN_PITCH} and {MAX_PITCH}, got {request.pitch}"
            raise TTSInvalidRequestError(msg, provider_id=self.provider_id)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            msg: str = f"{self.__class__.__name__} is not initialized"
            raise TTSInitializationError(msg, provider_id=self.provider_id)

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """Synthesize audio and timing marks (audio-returning providers).

        Raises:
            TTSNotSupportedError: If the provider plays audio itself.
        """
        _ = request
        msg: str = f"{self.__class__.__name__} does not return audio"
        raise TTSNotSupportedError(msg, provider_id=self.provider_id)

    async def speak(self, request: SynthesisRequest) -> None:
        """Speak the request and return when playback ends (playback-owning providers).

        Raises:
            TTSNotSupportedError: If the provider only returns audio.
        """
        _ = request
        msg: str = f"{self.__class__.__name__} does not play audio"
        raise TTSNotSupportedError(msg, provider_id=self.provider_id)

    async def pause(self) -> None:
        """Pause provider-owned playback (override if necessary)."""

    async def resume(self) -> None:
        """Resume provider-owned playback (override if necessary)."""

    async def stop(self) -> None:
        """Stop provider-owned playback (override if necessary)."""

    async def destroy(self) -> None:
        """Release held resources (override if necessary)."""
        self._initialized = False
        logger.info("%s destroyed", self.__class__.__name__)
