"""Logging setup shared by every SpeechSync module.

Module loggers are children of the `SpeechSync` logger, so handlers attached once to
that logger by `LoggerUtils.setup` cover the whole engine.
"""

from __future__ import annotations

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils"]

NAMESPACE: Final[str] = "SpeechSync"

_ROTATE_BYTES: Final[int] = 2 * 1024 * 1024
_ROTATE_BACKUPS: Final[int] = 2

_CONSOLE_FORMAT: Final[str] = "%(levelname)s: %(message)s"
_FILE_FORMAT: Final[str] = "%(asctime)s %(levelname)-8s %(name)-40s %(funcName)s:%(lineno)d\t%(message)s"


class LoggerUtils:
    """Process-wide logging configuration (singleton).

    The console handler shows WARNING and above; the optional rotating file handler
    records everything the namespace level lets through.
    """

    _instance: ClassVar[Self | None] = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.root = logging.getLogger(NAMESPACE)
            instance.attached = False
            cls._instance = instance
        return cls._instance

    root: logging.Logger
    attached: bool

    @classmethod
    def setup(cls, *, filename: str | Path = "", level: str = "INFO", debug: bool = False) -> LoggerUtils:
        """Attach handlers (first call only) and set the namespace level.

        Args:
            filename (str | Path): Log file path. Empty means console only.
            level (str): Level name such as `"INFO"`. Unknown names fall back to INFO.
            debug (bool): Force DEBUG regardless of `level`.

        Returns:
            LoggerUtils: The singleton.
        """
        utils = cls()
        if not utils.attached:
            utils._attach_console()
            if str(filename).strip():
                utils._attach_file(str(filename))
            warnings.showwarning = utils._log_warning
            utils.attached = True
        utils.set_level("DEBUG" if debug else level)
        return utils

    def _attach_console(self) -> None:
        if sys.stderr is None:
            self.root.addHandler(logging.NullHandler())
            return
        handler: logging.StreamHandler[TextIO] = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.WARNING)
        handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        self.root.addHandler(handler)

    def _attach_file(self, filename: str) -> None:
        try:
            handler = RotatingFileHandler(
                filename, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8"
            )
        except OSError as err:
            self.root.error("Cannot open log file '%s': %s", filename, err)
            return
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        self.root.addHandler(handler)

    def set_level(self, level: str) -> None:
        """Set the namespace level by name; unknown names fall back to INFO."""
        value: int | None = logging.getLevelNamesMapping().get(level.upper())
        if value is None:
            self.root.warning("Unknown logging level '%s'; using 'INFO'.", level)
            value = logging.INFO
        self.root.setLevel(value)

    def _log_warning(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        _ = file, line
        self.root.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return `SpeechSync.<name>`, or the namespace logger itself when name is empty."""
        return logging.getLogger(f"{NAMESPACE}.{name}" if name else NAMESPACE)
