"""INI settings loader for SpeechSync.

`speechsync.ini` is read with configparser and every known key is coerced to the type of
its default in `models.config_models`. Booleans and numbers are written bare; strings,
lists and dicts are written as Python literals and parsed with `ast.literal_eval`.
"""

from __future__ import annotations

import ast
import configparser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from models.speech_models import MAX_RATE, MAX_VOLUME, MIN_RATE, MIN_VOLUME
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_PROVIDERS: Final[list[str]] = ["server_relay", "google_cloud", "gtts", "on_device"]
ALLOWED_LOG_LEVELS: Final[list[str]] = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Characters tolerated around bare numbers ("1.5", '80%')
_NUMBER_DECORATIONS: Final[str] = "'\"%"


class ConfigLoaderError(Exception):
    """Base class for settings errors."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The settings file is missing."""


class ConfigFormatError(ConfigLoaderError):
    """A setting could not be parsed."""


class ConfigValueError(ConfigFormatError):
    """A setting parsed but its value is not acceptable."""


class ConfigTypeError(ConfigFormatError):
    """A setting parsed to the wrong type."""


def _parse_float(raw: str) -> float:
    return float(raw.strip(_NUMBER_DECORATIONS))


def _parse_int(raw: str) -> int:
    return int(float(raw.strip(_NUMBER_DECORATIONS)))


def _parse_bool(raw: str) -> bool:
    lowered: str = raw.strip().lower()
    if lowered not in configparser.ConfigParser.BOOLEAN_STATES:
        msg: str = f"Not a boolean: {raw}"
        raise ValueError(msg)
    return configparser.ConfigParser.BOOLEAN_STATES[lowered]


_SCALAR_PARSERS: Final[dict[type, Callable[[str], Any]]] = {
    bool: _parse_bool,
    int: _parse_int,
    float: _parse_float,
}


def coerce_setting(name: str, raw: str, default: Any) -> Any:
    """Convert one raw INI value to the type of its default.

    Args:
        name (str): Dotted setting name used in error messages, e.g. `PLAYBACK.RATE`.
        raw (str): Value as written in the file.
        default (Any): Default value of the setting; its type is the target type.

    Returns:
        Any: The converted value.

    Raises:
        ConfigValueError: If a number or boolean is malformed, or a literal is not constant.
        ConfigFormatError: If a literal has a syntax error.
        ConfigTypeError: If a literal evaluates to the wrong type.
    """
    msg: str
    parser: Callable[[str], Any] | None = _SCALAR_PARSERS.get(type(default))
    if parser is not None:
        try:
            return parser(raw)
        except ValueError as err:
            msg = f"Invalid value for {name}: {err}"
            raise ConfigValueError(msg) from err

    try:
        value: Any = ast.literal_eval(raw)
    except ValueError as err:
        msg = f"Invalid literal for {name}: {raw}"
        raise ConfigValueError(msg) from err
    except SyntaxError as err:
        msg = f"Invalid literal for {name}: {raw}"
        raise ConfigFormatError(msg) from err

    if not isinstance(value, type(default)):
        msg = f"Expected {type(default).__name__} for {name}, got {type(value).__name__}"
        raise ConfigTypeError(msg)
    return value


class ConfigLoader:
    """Load `speechsync.ini` into a validated `Config`.

    Sections and keys missing from the file keep their defaults. Unknown sections are
    logged and skipped. Command-line overrides are applied before validation so they are
    checked like file values.

    Args:
        config_filename (str): Path of the INI file.
        script_name (str): Name of the running script, used in the not-found message.
        **overrides: `provider`, `rate` and `debug` from the command line. `None` means
            "not given".

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigFormatError: If the file or one of its values is invalid.
    """

    def __init__(self, *, config_filename: str, script_name: str, **overrides: Any) -> None:
        msg: str
        if not Path(config_filename).exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Create it next to '{script_name}' or pass --config."
            )
            raise ConfigFileNotFoundError(msg)

        parser = configparser.ConfigParser()
        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._load_sections(parser)
        self._apply_overrides(overrides)
        self._validate()

    def _load_sections(self, parser: configparser.ConfigParser) -> None:
        known: set[str] = {section.name for section in fields(self.config)}
        for name in parser.sections():
            if name not in known:
                logger.warning("Ignoring unknown section: '%s'", name)

        for section_field in fields(self.config):
            name = section_field.name
            if not parser.has_section(name):
                logger.debug("Section '%s' not defined; using defaults", name)
                continue
            section: Any = getattr(self.config, name)
            for key_field in fields(section):
                key: str = key_field.name
                if not parser.has_option(name, key):
                    continue
                default: Any = getattr(section, key)
                setattr(section, key, coerce_setting(f"{name}.{key}", parser.get(name, key, raw=True), default))

    def _apply_overrides(self, overrides: dict[str, Any]) -> None:
        if overrides.get("provider") is not None:
            self.config.GENERAL.PROVIDER = overrides["provider"]
        if overrides.get("rate") is not None:
            self.config.PLAYBACK.RATE = float(overrides["rate"])
        if overrides.get("debug"):
            self.config.GENERAL.DEBUG = True

    def _validate(self) -> None:
        """Check choices, ranges and catalog scopes.

        Raises:
            ConfigValueError: If a value is outside what the engine accepts.
            ConfigTypeError: If a choice setting is not a string.
        """
        general = self.config.GENERAL
        playback = self.config.PLAYBACK
        catalog = self.config.CATALOG

        self._require_choice("GENERAL.PROVIDER", general.PROVIDER, ALLOWED_PROVIDERS)
        if isinstance(general.LOG_LEVEL, str):
            general.LOG_LEVEL = general.LOG_LEVEL.upper()
        self._require_choice("GENERAL.LOG_LEVEL", general.LOG_LEVEL, ALLOWED_LOG_LEVELS)
        self._require_range("PLAYBACK.RATE", playback.RATE, MIN_RATE, MAX_RATE)
        self._require_range("PLAYBACK.VOLUME", playback.VOLUME, MIN_VOLUME, MAX_VOLUME)

        msg: str
        if playback.POLL_INTERVAL <= 0:
            msg = f"'PLAYBACK.POLL_INTERVAL' must be positive: {playback.POLL_INTERVAL}"
            raise ConfigValueError(msg)
        if not catalog.SCOPES:
            msg = "'CATALOG.SCOPES' must name at least one scope"
            raise ConfigValueError(msg)
        unknown: list[str] = [scope for scope in catalog.FILES if scope not in catalog.SCOPES]
        if unknown:
            msg = f"'CATALOG.FILES' refers to unknown scope '{unknown[0]}'"
            raise ConfigValueError(msg)
        if self.config.CACHE.MAX_ITEMS < 1:
            msg = f"'CACHE.MAX_ITEMS' must be at least 1: {self.config.CACHE.MAX_ITEMS}"
            raise ConfigValueError(msg)

    @staticmethod
    def _require_range(name: str, value: float, minimum: float, maximum: float) -> None:
        if not minimum <= value <= maximum:
            msg: str = f"'{name}' must be between {minimum} and {maximum}: {value}"
            raise ConfigValueError(msg)

    @staticmethod
    def _require_choice(name: str, value: Any, choices: list[str]) -> None:
        msg: str
        if not isinstance(value, str):
            msg = f"Unsupported type used for '{name}': {type(value)}"
            raise ConfigTypeError(msg)
        if value not in choices:
            msg = f"Unknown value '{value}' is set for '{name}'; expected one of {choices}"
            raise ConfigValueError(msg)
