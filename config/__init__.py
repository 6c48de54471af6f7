"""Configuration loading and validation for SpeechSync.

This package provides utilities for loading, parsing, and validating configuration
settings from the speechsync.ini file.
"""

from config.loader import (
    Config,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigLoaderError,
    ConfigTypeError,
    ConfigValueError,
)

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]
