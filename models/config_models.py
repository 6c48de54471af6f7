"""Configuration data models for the speech synthesis engine.

Each dataclass mirrors one section of `speechsync.ini`. Field names are the INI keys;
the declared default decides how the raw INI string is coerced.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Config",
    "ProviderSettings",
]


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = ""
    LOG_LEVEL: str = "INFO"
    PROVIDER: str = "server_relay"


@dataclass
class Playback:
    RATE: float = 1.0
    VOLUME: float = 1.0
    POLL_INTERVAL: float = 0.05
    LANGUAGE: str = "en-US"
    VOICE: str = ""


@dataclass
class Catalog:
    SCOPES: list[str] = field(default_factory=lambda: ["assessment", "item"])
    DEFAULT_LANGUAGE: str = "en-US"
    FILES: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class Cache:
    ENABLED: bool = True
    MAX_ITEMS: int = 100
    TTL_SECONDS: float = 86400.0


@dataclass
class ProviderSettings:
    """Settings for one synthesis provider.

    Not every provider reads every key; unused keys are ignored.
    """

    ENDPOINT: str = ""
    API_KEY: str = ""
    AUTH_TOKEN: str = ""
    VOICE: str = ""
    LANGUAGE: str = ""
    TIMEOUT: float = 10.0
    VALIDATE_ENDPOINT: bool = False
    AUDIO_ENCODING: str = "MP3"
    SAMPLE_RATE: int = 24000
    SERVER_PROVIDER: str = ""
    HEADERS: dict[str, str] = field(default_factory=dict)
    RATE_WPM: int = 200


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    PLAYBACK: Playback = field(default_factory=Playback)
    CATALOG: Catalog = field(default_factory=Catalog)
    CACHE: Cache = field(default_factory=Cache)
    SERVER_RELAY: ProviderSettings = field(default_factory=ProviderSettings)
    GOOGLE_CLOUD: ProviderSettings = field(default_factory=ProviderSettings)
    GTTS: ProviderSettings = field(default_factory=ProviderSettings)
    ON_DEVICE: ProviderSettings = field(default_factory=ProviderSettings)
