from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

__all__: list[str] = [
    "FileMissingError",
    "FileUtils",
    "FileUtilsError",
    "UnsupportedFileFormatError",
]


class FileUtilsError(Exception):
    """A user-supplied file path is not usable."""


class FileMissingError(FileUtilsError):
    """The path does not point at an existing file."""


class UnsupportedFileFormatError(FileUtilsError):
    """The file extension is not one the caller accepts."""


class FileUtils:
    """Helpers for paths that come from settings or the command line."""

    @staticmethod
    def resolve_path(path: str | Path, *, strict: bool = False) -> Path:
        """Expand `$VARS` and `~`, then make the path absolute against the working directory.

        Args:
            path (str | Path): Path as written by the user, e.g. `"~/catalogs/$LOCALE/item.json"`.
            strict (bool): Raise `FileNotFoundError` when the result does not exist.

        Returns:
            Path: Absolute, normalised path.
        """
        expanded = Path(os.path.expandvars(os.fspath(path))).expanduser()
        if not expanded.is_absolute():
            expanded = Path.cwd() / expanded
        return expanded.resolve(strict=strict)

    @staticmethod
    def validate_file_path(file_path: Path, suffix: list[str] | str) -> None:
        """Require an existing file whose extension is one of `suffix` (case-insensitive).

        Raises:
            FileMissingError: If `file_path` is not a file.
            UnsupportedFileFormatError: If the extension is not accepted.
        """
        accepted: list[str] = [suffix.lower()] if isinstance(suffix, str) else [s.lower() for s in suffix]
        msg: str
        if not file_path.is_file():
            msg = f"File does not exist: {file_path}"
            raise FileMissingError(msg)
        if file_path.suffix.lower() not in accepted:
            msg = f"Unsupported file format: '{file_path.suffix}'. Supported formats are: {', '.join(accepted)}"
            raise UnsupportedFileFormatError(msg)

    @staticmethod
    def load_json(file_path: Path) -> Any:
        """Read a UTF-8 JSON document.

        Raises:
            OSError: If the file cannot be read.
            json.JSONDecodeError: If the content is not valid JSON.
        """
        with file_path.open(encoding="utf-8") as fp:
            return json.load(fp)
