from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.speech.engines.server_relay import ServerRelayProvider
from core.speech.interface import (
    TTSAuthenticationError,
    TTSInitializationError,
    TTSInvalidRequestError,
    TTSProviderError,
    TTSRateLimitExceededError,
)
from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError
from models.config_models import ProviderSettings
from models.speech_models import SpeechMark, SynthesisRequest

AUDIO: bytes = b"ID3fake-mp3"


def _response(marks: list[dict] | None = None, **metadata) -> dict:
    return {
        "audio": base64.b64encode(AUDIO).decode("ascii"),
        "contentType": "audio/mpeg",
        "marks": marks if marks is not None else [],
        "metadata": {"providerId": "polly", "voice": "Joanna", "charCount": 11, **metadata},
    }


def _provider(http: MagicMock | None = None, **settings) -> ServerRelayProvider:
    provider = ServerRelayProvider()
    provider.initialize(ProviderSettings(ENDPOINT="https://relay.example/api/tts/", **settings))
    if http is not None:
        provider.async_http = http
    return provider


def _http(*, post: object = None, get: object = None) -> MagicMock:
    http = MagicMock()
    http.closed = False
    http.post = post if isinstance(post, AsyncMock) else AsyncMock(return_value=post)
    http.get = get if isinstance(get, AsyncMock) else AsyncMock(return_value=get)
    http.close = AsyncMock()
    return http


def test_initialize_requires_endpoint() -> None:
    provider = ServerRelayProvider()

    with pytest.raises(TTSInitializationError, match="ENDPOINT"):
        provider.initialize(ProviderSettings())

    assert not provider.is_initialized


def test_default_headers_include_bearer_token() -> None:
    provider = _provider(AUTH_TOKEN="secret", HEADERS={"X-Client": "speechsync"})

    headers = provider._default_headers()

    assert headers["Authorization"] == "Bearer secret"
    assert headers["X-Client"] == "speechsync"
    assert headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_synthesize_posts_camel_case_body_and_converts_marks() -> None:
    marks = [
        {"timeMs": 420, "type": "word", "startOffset": 6, "endOffset": 11, "value": "world"},
        {"timeMs": 0, "type": "word", "startOffset": 0, "endOffset": 5, "value": "Hello"},
        {"timeMs": 0, "type": "sentence", "startOffset": 0, "endOffset": 11, "value": "Hello world"},
    ]
    http = _http(post=_response(marks, durationSeconds=0.8))
    provider = _provider(http, VOICE="Joanna", SERVER_PROVIDER="polly")

    result = await provider.synthesize(SynthesisRequest(text="Hello world", language="en-US"))

    http.post.assert_awaited_once()
    kwargs = http.post.await_args.kwargs
    assert kwargs["url"] == "https://relay.example/api/tts/synthesize"
    assert kwargs["data"] == {
        "text": "Hello world",
        "includeTimingMarks": True,
        "voice": "Joanna",
        "language": "en-US",
        "provider": "polly",
    }
    assert kwargs["total_timeout"] == 10.0

    assert result.audio == AUDIO
    assert result.content_type == "audio/mpeg"
    assert result.marks == [
        SpeechMark(time_ms=0, start_offset=0, end_offset=5, value="Hello"),
        SpeechMark(time_ms=420, start_offset=6, end_offset=11, value="world"),
    ]
    assert result.metadata.provider_id == "polly"
    assert result.metadata.duration_seconds == 0.8


@pytest.mark.asyncio
async def test_optional_fields_are_omitted_from_body() -> None:
    http = _http(post=_response())
    provider = _provider(http)

    await provider.synthesize(SynthesisRequest(text="Hi", include_marks=False))

    assert http.post.await_args.kwargs["data"] == {"text": "Hi", "includeTimingMarks": False}


@pytest.mark.asyncio
async def test_invalid_marks_are_discarded() -> None:
    marks = [
        {"timeMs": 0, "startOffset": 0, "endOffset": 5, "value": "Hello"},
        {"timeMs": 300, "startOffset": 6, "endOffset": 99, "value": "world"},
    ]
    provider = _provider(_http(post=_response(marks)))

    result = await provider.synthesize(SynthesisRequest(text="Hello world"))

    assert [m.value for m in result.marks] == ["Hello"]


@pytest.mark.asyncio
async def test_marks_are_estimated_when_server_returns_none() -> None:
    provider = _provider(_http(post=_response([])), RATE_WPM=120)

    result = await provider.synthesize(SynthesisRequest(text="one two"))

    assert [(m.time_ms, m.value) for m in result.marks] == [(0, "one"), (500, "two")]


@pytest.mark.asyncio
async def test_too_long_text_is_rejected_before_network() -> None:
    http = _http(post=_response())
    provider = _provider(http)

    with pytest.raises(TTSInvalidRequestError, match="maximum length of 3000"):
        await provider.synthesize(SynthesisRequest(text="a" * 3001))

    http.post.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (AsyncCommError("denied", status=401), TTSAuthenticationError),
        (AsyncCommError("denied", status=403), TTSAuthenticationError),
        (AsyncCommError("slow down", status=429, payload={"error": "Too many requests"}), TTSRateLimitExceededError),
        (AsyncCommError("bad", status=400), TTSInvalidRequestError),
        (AsyncCommError("oops", status=500), TTSProviderError),
        (AsyncCommTimeoutError("timeout"), TTSProviderError),
        (AsyncCommError("refused"), TTSProviderError),
    ],
)
async def test_transport_errors_are_mapped(error: AsyncCommError, expected: type[Exception]) -> None:
    provider = _provider(_http(post=AsyncMock(side_effect=error)))

    with pytest.raises(expected) as excinfo:
        await provider.synthesize(SynthesisRequest(text="Hello"))

    assert excinfo.value.provider_id == "server_relay"  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_error_detail_from_payload() -> None:
    provider = _provider(
        _http(post=AsyncMock(side_effect=AsyncCommError("slow", status=429, payload={"error": "Too many requests"})))
    )

    with pytest.raises(TTSRateLimitExceededError, match="Too many requests"):
        await provider.synthesize(SynthesisRequest(text="Hello"))


@pytest.mark.asyncio
async def test_response_without_audio_is_a_provider_error() -> None:
    provider = _provider(_http(post={"contentType": "audio/mpeg"}))

    with pytest.raises(TTSProviderError, match="no audio"):
        await provider.synthesize(SynthesisRequest(text="Hello"))


@pytest.mark.asyncio
async def test_invalid_base64_is_a_provider_error() -> None:
    provider = _provider(_http(post={"audio": "***not base64***"}))

    with pytest.raises(TTSProviderError, match="base64"):
        await provider.synthesize(SynthesisRequest(text="Hello"))


@pytest.mark.asyncio
async def test_async_init_validates_endpoint() -> None:
    provider = _provider(_http(get=AsyncMock(side_effect=AsyncCommError("refused"))), VALIDATE_ENDPOINT=True)

    with pytest.raises(TTSInitializationError, match="not reachable"):
        await provider.async_init()


@pytest.mark.asyncio
async def test_async_init_skipped_by_default() -> None:
    http = _http(get={"voices": []})
    provider = _provider(http)

    await provider.async_init()

    http.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_voices() -> None:
    http = _http(get={"voices": [{"id": "Joanna", "name": "Joanna", "language": "en-US", "gender": "female"}]})
    provider = _provider(http)

    voices = await provider.get_voices("en-US")

    assert voices[0].id == "Joanna"
    assert http.get.await_args.kwargs["params"] == {"language": "en-US"}


@pytest.mark.asyncio
async def test_destroy_closes_http() -> None:
    http = _http()
    provider = _provider(http)

    await provider.destroy()

    http.close.assert_awaited_once()
    assert provider.async_http is None
    assert not provider.is_initialized
