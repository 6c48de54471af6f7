from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from gtts import gTTSError

from core.speech.engines import g_tts
from core.speech.engines.g_tts import GoogleText2Speech, _gtts_language
from core.speech.interface import TTSInvalidRequestError, TTSProviderError, TTSRateLimitExceededError
from models.speech_models import SynthesisRequest


class FakeGTTS:
    instances: list[FakeGTTS] = []

    def __init__(self, text: str, lang: str) -> None:
        self.text = text
        self.lang = lang
        FakeGTTS.instances.append(self)

    def write_to_fp(self, fp) -> None:
        fp.write(b"ID3mp3")


def _provider() -> GoogleText2Speech:
    provider = GoogleText2Speech()
    provider.initialize(None)
    return provider


@pytest.mark.parametrize(
    ("language", "expected"),
    [
        (None, "en"),
        ("en-US", "en"),
        ("ja-JP", "ja"),
        ("zh-TW", "zh-TW"),
        ("zh-Hant", "zh-TW"),
        ("zh", "zh-CN"),
    ],
)
def test_gtts_language(language: str | None, expected: str) -> None:
    assert _gtts_language(language) == expected


def test_capabilities_have_no_word_boundary() -> None:
    capabilities = _provider().get_capabilities()

    assert not capabilities.supports_word_boundary
    assert capabilities.supports_resume


@pytest.mark.asyncio
async def test_synthesize_returns_mp3(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeGTTS.instances.clear()
    monkeypatch.setattr(g_tts, "gTTS", FakeGTTS)

    result = await _provider().synthesize(SynthesisRequest(text="Hallo", language="de-DE"))

    assert result.audio == b"ID3mp3"
    assert result.content_type == "audio/mpeg"
    assert result.marks == []
    assert result.metadata.provider_id == "gtts"
    assert FakeGTTS.instances[0].lang == "de"


@pytest.mark.asyncio
async def test_unsupported_language_is_invalid_request(monkeypatch: pytest.MonkeyPatch) -> None:
    def unsupported(*_args, **_kwargs):
        raise ValueError("Language not supported: xx")

    monkeypatch.setattr(g_tts, "gTTS", unsupported)

    with pytest.raises(TTSInvalidRequestError, match="Unsupported request"):
        await _provider().synthesize(SynthesisRequest(text="Hello", language="xx"))


@pytest.mark.asyncio
@pytest.mark.parametrize(("status_code", "expected"), [(429, TTSRateLimitExceededError), (500, TTSProviderError)])
async def test_gtts_errors_are_mapped(
    monkeypatch: pytest.MonkeyPatch, status_code: int, expected: type[Exception]
) -> None:
    response = MagicMock()
    response.status_code = status_code

    class FailingGTTS(FakeGTTS):
        def write_to_fp(self, fp) -> None:
            _ = fp
            err = gTTSError("failed")
            err.rsp = response
            raise err

    monkeypatch.setattr(g_tts, "gTTS", FailingGTTS)

    with pytest.raises(expected):
        await _provider().synthesize(SynthesisRequest(text="Hello"))
