"""Shared base for providers that synthesize through a remote HTTP service.

Handles the HTTP client lifecycle, base64 audio decoding and the translation of transport
errors into the synthesis error taxonomy:

- 401/403 -> `TTSAuthenticationError`
- 429 -> `TTSRateLimitExceededError`
- 400/413/422 -> `TTSInvalidRequestError`
- timeouts and anything else -> `TTSProviderError`
"""

from __future__ import annotations

import base64
import binascii
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Final, TypeVar

from marshmallow.exceptions import ValidationError

from core.speech.interface import (
    SpeechProvider,
    TTSAuthenticationError,
    TTSExceptionError,
    TTSInvalidRequestError,
    TTSProviderError,
    TTSRateLimitExceededError,
)
from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError, AsyncHttp
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from dataclasses_json import DataClassJsonMixin

    from models.speech_models import SynthesisRequest, SynthesisResult

__all__: list[str] = ["RelayProvider"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

T = TypeVar("T", bound="DataClassJsonMixin")

AUTH_STATUSES: Final[frozenset[int]] = frozenset({401, 403})
RATE_LIMIT_STATUSES: Final[frozenset[int]] = frozenset({429})
INVALID_STATUSES: Final[frozenset[int]] = frozenset({400, 413, 422})


class RelayProvider(SpeechProvider):
    """Base class of HTTP relay providers.

    Subclasses implement `_synthesize_remote`; `synthesize` validates the request first so
    invalid requests never reach the network.
    """

    def __init__(self) -> None:
        super().__init__()
        self.async_http: AsyncHttp | None = None

    def _default_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        headers.update(self.config.headers)
        return headers

    @property
    def http(self) -> AsyncHttp:
        """HTTP client, created on first use since aiohttp sessions need a running loop."""
        if self.async_http is None or self.async_http.closed:
            self.async_http = AsyncHttp(headers=self._default_headers())
        return self.async_http

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        self._ensure_initialized()
        self.validate_request(request)
        try:
            return await self._synthesize_remote(request)
        except TTSExceptionError as err:
            if err.provider_id is None:
                err.provider_id = self.provider_id
            raise
        except AsyncCommError as err:
            raise self.map_comm_error(err) from err

    @abstractmethod
    async def _synthesize_remote(self, request: SynthesisRequest) -> SynthesisResult:
        """Perform the remote call for a validated request."""
        raise NotImplementedError

    async def _api_request(
        self,
        method: str,
        url: str,
        model: type[T] | None = None,
        *,
        params: dict[str, str] | None = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        total_timeout: float | None = None,
    ) -> Any:
        """Send a request and optionally deserialize the JSON response into `model`.

        Raises:
            AsyncCommError: On transport failures and error responses.
            TTSProviderError: If the response does not match `model`.
        """
        logger.info("'%s': '%s'", method.upper(), url)
        timeout: float = total_timeout if total_timeout is not None else self.config.timeout
        if method.lower() == "get":
            response: Any = await self.http.get(url=url, params=params, headers=headers, total_timeout=timeout)
        elif method.lower() == "post":
            response = await self.http.post(url=url, params=params, data=data, headers=headers, total_timeout=timeout)
        else:
            msg = f"Unsupported HTTP method: {method}"
            raise ValueError(msg)

        if model is None:
            return response
        try:
            # infer_missing keeps servers that omit optional fields usable
            return model.from_dict(response, infer_missing=True)
        except (ValidationError, TypeError, AttributeError, KeyError) as err:
            msg: str = f"The response data from the API is invalid: {err}"
            logger.error(msg)
            raise TTSProviderError(msg, provider_id=self.provider_id) from err

    def decode_audio(self, audio_b64: str) -> bytes:
        """Decode base64 audio from a JSON response.

        Raises:
            TTSProviderError: If the payload is missing or not valid base64.
        """
        if not audio_b64:
            msg = "The response contains no audio"
            raise TTSProviderError(msg, provider_id=self.provider_id)
        try:
            return base64.b64decode(audio_b64, validate=True)
        except (binascii.Error, ValueError) as err:
            msg = f"The response audio is not valid base64: {err}"
            raise TTSProviderError(msg, provider_id=self.provider_id) from err

    def map_comm_error(self, err: AsyncCommError) -> TTSExceptionError:
        """Translate a transport error into the synthesis error taxonomy."""
        detail: str = self._error_detail(err)
        if isinstance(err, AsyncCommTimeoutError):
            return TTSProviderError(f"Request timed out: {detail}", provider_id=self.provider_id)
        status: int | None = err.status
        if status in AUTH_STATUSES:
            return TTSAuthenticationError(f"Authentication failed: {detail}", provider_id=self.provider_id)
        if status in RATE_LIMIT_STATUSES:
            return TTSRateLimitExceededError(f"Rate limit exceeded: {detail}", provider_id=self.provider_id)
        if status in INVALID_STATUSES:
            return TTSInvalidRequestError(f"Request rejected: {detail}", provider_id=self.provider_id)
        return TTSProviderError(f"Synthesis failed: {detail}", provider_id=self.provider_id)

    @staticmethod
    def _error_detail(err: AsyncCommError) -> str:
        payload: Any = err.payload
        if isinstance(payload, dict):
            message: Any = payload.get("message") or payload.get("error")
            if isinstance(message, dict):
                message = message.get("message")
            if message:
                return f"{err.msg} ({message})"
        return err.msg

    async def destroy(self) -> None:
        if self.async_http is not None:
            await self.async_http.close()
            self.async_http = None
        await super().destroy()
