from __future__ import annotations

import logging
from pathlib import Path
from textwrap import dedent

import pytest

from config.loader import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigTypeError,
    ConfigValueError,
    coerce_setting,
)


def _write_ini(tmp_path: Path, content: str) -> Path:
    ini_path: Path = tmp_path / "speechsync.ini"
    ini_path.write_text(dedent(content), encoding="utf-8")
    return ini_path


def test_config_loader_raises_for_missing_file(tmp_path: Path) -> None:
    ini_path: Path = tmp_path / "missing.ini"
    with pytest.raises(ConfigFileNotFoundError):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_config_loader_reads_sections_and_overrides(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        DEBUG = False
        LOG_LEVEL = "warning"
        PROVIDER = "google_cloud"

        [PLAYBACK]
        RATE = 1.5
        VOLUME = 0.8
        LANGUAGE = "fr-FR"

        [CATALOG]
        SCOPES = ["test", "section", "item"]
        FILES = {"item": ["catalogs/item.json"]}

        [CACHE]
        MAX_ITEMS = "25"

        [GOOGLE_CLOUD]
        API_KEY = "k3y"
        HEADERS = {"X-Goog-User-Project": "demo"}
        """,
    )

    loader = ConfigLoader(
        config_filename=str(ini_path),
        script_name="read_aloud.py",
        provider="gtts",
        rate=2.0,
        debug=True,
    )

    config = loader.config
    assert config.GENERAL.SCRIPT_NAME == "read_aloud.py"
    assert config.GENERAL.DEBUG is True
    assert config.GENERAL.LOG_LEVEL == "WARNING"
    assert config.GENERAL.PROVIDER == "gtts"
    assert config.PLAYBACK.RATE == 2.0
    assert config.PLAYBACK.VOLUME == 0.8
    assert config.PLAYBACK.LANGUAGE == "fr-FR"
    assert config.CATALOG.SCOPES == ["test", "section", "item"]
    assert config.CATALOG.FILES == {"item": ["catalogs/item.json"]}
    assert config.CACHE.MAX_ITEMS == 25
    assert config.GOOGLE_CLOUD.API_KEY == "k3y"
    assert config.GOOGLE_CLOUD.HEADERS == {"X-Goog-User-Project": "demo"}
    # Missing sections keep their defaults
    assert config.SERVER_RELAY.TIMEOUT == 10.0


def test_config_loader_accepts_sample_file() -> None:
    sample: Path = Path(__file__).resolve().parents[2] / "speechsync.ini"
    loader = ConfigLoader(config_filename=str(sample), script_name="test")

    assert loader.config.GENERAL.PROVIDER == "server_relay"
    assert loader.config.SERVER_RELAY.ENDPOINT == "http://localhost:3000/api/tts"
    assert loader.config.SERVER_RELAY.RATE_WPM == 0


def test_unknown_section_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="SpeechSync")
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [HIGHLIGHTER]
        COLOR = "yellow"
        """,
    )

    loader = ConfigLoader(config_filename=str(ini_path), script_name="test")

    assert loader.config.GENERAL.PROVIDER == "server_relay"
    assert any("Ignoring unknown section" in rec.message for rec in caplog.records)


@pytest.mark.parametrize(
    ("content", "error", "match"),
    [
        ('[GENERAL]\nPROVIDER = "polly"\n', ConfigValueError, "GENERAL.PROVIDER"),
        ('[GENERAL]\nLOG_LEVEL = "LOUD"\n', ConfigValueError, "GENERAL.LOG_LEVEL"),
        ("[PLAYBACK]\nRATE = 5\n", ConfigValueError, "PLAYBACK.RATE"),
        ("[PLAYBACK]\nVOLUME = 1.5\n", ConfigValueError, "PLAYBACK.VOLUME"),
        ("[PLAYBACK]\nPOLL_INTERVAL = 0\n", ConfigValueError, "POLL_INTERVAL"),
        ("[PLAYBACK]\nRATE = fast\n", ConfigValueError, "PLAYBACK.RATE"),
        ("[CATALOG]\nSCOPES = []\n", ConfigValueError, "CATALOG.SCOPES"),
        ('[CATALOG]\nFILES = {"chapter": ["a.json"]}\n', ConfigValueError, "unknown scope 'chapter'"),
        ("[CACHE]\nMAX_ITEMS = 0\n", ConfigValueError, "CACHE.MAX_ITEMS"),
        ('[CATALOG]\nSCOPES = "item"\n', ConfigTypeError, "Expected list"),
        ("[PLAYBACK]\nLANGUAGE = en-US\n", ConfigValueError, "Invalid literal"),
        ('[PLAYBACK]\nLANGUAGE = "en-US\n', ConfigFormatError, "Invalid literal"),
    ],
)
def test_invalid_settings_are_rejected(
    tmp_path: Path, content: str, error: type[ConfigFormatError], match: str
) -> None:
    ini_path: Path = _write_ini(tmp_path, content)

    with pytest.raises(error, match=match):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_invalid_rate_override_is_rejected(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "[PLAYBACK]\nRATE = 1.0\n")

    with pytest.raises(ConfigValueError, match="PLAYBACK.RATE"):
        ConfigLoader(config_filename=str(ini_path), script_name="test", rate=0.1)


def test_malformed_file_is_a_format_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "no section header\n")

    with pytest.raises(ConfigFormatError, match="Failed to parse"):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


@pytest.mark.parametrize(
    ("raw", "default", "expected"),
    [
        ("yes", False, True),
        ("'80%'", 0, 80),
        ('"0.5"', 1.0, 0.5),
        ('["a", "b"]', [], ["a", "b"]),
        ('"Marlene"', "", "Marlene"),
    ],
)
def test_coerce_setting(raw: str, default: object, expected: object) -> None:
    assert coerce_setting("SECTION.KEY", raw, default) == expected


def test_coerce_setting_rejects_bad_boolean() -> None:
    with pytest.raises(ConfigValueError, match="SECTION.KEY"):
        coerce_setting("SECTION.KEY", "maybe", True)
