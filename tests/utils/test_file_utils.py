from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from utils.file_utils import FileMissingError, FileUtils, UnsupportedFileFormatError

if TYPE_CHECKING:
    from pathlib import Path


def test_resolve_path_expands_variables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_DIR", str(tmp_path))

    assert FileUtils.resolve_path("$CATALOG_DIR/item.json") == tmp_path.resolve() / "item.json"


def test_resolve_path_is_relative_to_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert FileUtils.resolve_path("catalogs/item.json") == tmp_path.resolve() / "catalogs" / "item.json"


def test_validate_file_path(tmp_path: Path) -> None:
    path = tmp_path / "item.JSON"
    path.write_text("[]", encoding="utf-8")

    FileUtils.validate_file_path(path, ".json")
    with pytest.raises(UnsupportedFileFormatError):
        FileUtils.validate_file_path(path, [".ini"])
    with pytest.raises(FileMissingError):
        FileUtils.validate_file_path(tmp_path / "missing.json", ".json")


def test_load_json(tmp_path: Path) -> None:
    path = tmp_path / "item.json"
    path.write_text('{"identifier": "eq1"}', encoding="utf-8")

    assert FileUtils.load_json(path) == {"identifier": "eq1"}
