from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from core.catalog.resolver import CatalogError, CatalogResolver
from models.catalog_models import AccessibilityCatalog, CatalogEntry

if TYPE_CHECKING:
    from pathlib import Path


def _catalog(identifier: str, *cards: tuple[str, str, str | None]) -> AccessibilityCatalog:
    return AccessibilityCatalog(
        identifier=identifier,
        cards=[CatalogEntry(catalog_type=kind, content=content, language=lang) for kind, content, lang in cards],
    )


@pytest.fixture
def resolver() -> CatalogResolver:
    resolver = CatalogResolver()
    resolver.add_catalogs(
        "assessment",
        [
            _catalog(
                "eq1",
                ("spoken", "x squared", "en-US"),
                ("spoken", "x au carré", "fr-FR"),
                ("braille", "⠭⠘⠆", None),
            ),
            _catalog("water", ("spoken", "H two O", "en-US")),
        ],
    )
    return resolver


def test_resolve_text_without_catalog_id_returns_text(resolver: CatalogResolver) -> None:
    assert resolver.resolve_text("x^2", None) == "x^2"
    assert resolver.resolve_text("x^2", "") == "x^2"


def test_resolve_text_uses_spoken_alternative(resolver: CatalogResolver) -> None:
    assert resolver.resolve_text("x^2", "eq1") == "x squared"
    assert resolver.resolve_text("x^2", "eq1", "fr-FR") == "x au carré"


def test_unknown_id_or_language_falls_back(resolver: CatalogResolver) -> None:
    assert resolver.resolve_text("x^2", "missing") == "x^2"
    # No German card: the default language card is used
    assert resolver.resolve_text("x^2", "eq1", "de-DE") == "x squared"


def test_item_scope_overrides_assessment_scope(resolver: CatalogResolver) -> None:
    resolver.add_catalogs("item", [_catalog("eq1", ("spoken", "the square of x", "en-US"))])

    resolved = resolver.get_alternative("eq1", language="en-US")

    assert resolved is not None
    assert resolved.content == "the square of x"
    assert resolved.scope == "item"
    # French only exists in the broader scope
    assert resolver.resolve("eq1", "fr-FR") == "x au carré"


def test_get_alternative_without_fallback(resolver: CatalogResolver) -> None:
    assert resolver.get_alternative("eq1", language="de-DE", use_fallback=False) is None
    braille = resolver.get_alternative("eq1", catalog_type="braille")
    assert braille is not None
    assert braille.content == "⠭⠘⠆"


def test_all_alternatives_hide_overridden_cards(resolver: CatalogResolver) -> None:
    resolver.add_catalogs("item", [_catalog("eq1", ("spoken", "the square of x", "en-US"))])

    alternatives = resolver.get_all_alternatives("eq1")

    assert [(alt.content, alt.scope) for alt in alternatives] == [
        ("the square of x", "item"),
        ("x au carré", "assessment"),
        ("⠭⠘⠆", "assessment"),
    ]


def test_listing_and_statistics(resolver: CatalogResolver) -> None:
    assert resolver.has_catalog("water")
    assert not resolver.has_catalog("fire")
    assert resolver.get_all_catalog_ids() == ["eq1", "water"]
    assert resolver.get_catalogs_by_type("braille") == ["eq1"]

    stats = resolver.get_statistics()
    assert stats.catalogs_per_scope == {"assessment": 2, "item": 0}
    assert stats.total_cards == 4
    assert stats.languages == frozenset({"en-US", "fr-FR"})
    assert stats.catalog_types == frozenset({"spoken", "braille"})


def test_clear_scope_and_reset(resolver: CatalogResolver) -> None:
    resolver.add_catalogs("item", [_catalog("water", ("spoken", "dihydrogen monoxide", "en-US"))])

    resolver.clear_scope("item")
    assert resolver.resolve("water") == "H two O"

    resolver.reset()
    assert resolver.get_all_catalog_ids() == []


def test_unknown_scope_is_rejected(resolver: CatalogResolver) -> None:
    with pytest.raises(ValueError, match="Unknown catalog scope"):
        resolver.add_catalogs("chapter", [])


@pytest.mark.parametrize("scopes", [[], ["item", "item"]])
def test_invalid_scopes(scopes: list[str]) -> None:
    with pytest.raises(ValueError):
        CatalogResolver(scopes)


def test_load_file(tmp_path: Path) -> None:
    path = tmp_path / "item.json"
    path.write_text(
        json.dumps(
            [
                {"identifier": "eq1", "cards": [{"catalog": "spoken", "content": "x squared", "language": "en-US"}]},
                {"identifier": "eq2", "cards": [{"catalog": "spoken", "content": "y cubed"}]},
            ]
        ),
        encoding="utf-8",
    )
    resolver = CatalogResolver()

    assert resolver.load_file("item", path) == 2
    assert resolver.resolve("eq1") == "x squared"
    assert resolver.resolve("eq2", "en-US") == "y cubed"


def test_load_file_accepts_single_catalog(tmp_path: Path) -> None:
    path = tmp_path / "single.json"
    path.write_text(json.dumps({"identifier": "eq1", "cards": []}), encoding="utf-8")

    assert CatalogResolver().load_file("assessment", path) == 1


@pytest.mark.parametrize(
    ("name", "content", "match"),
    [
        ("broken.json", "{not json", "Invalid catalog file"),
        ("catalog.txt", "[]", "Cannot load catalog file"),
        ("numbers.json", "[42]", "Invalid catalog file"),
    ],
)
def test_load_file_errors(tmp_path: Path, name: str, content: str, match: str) -> None:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(CatalogError, match=match):
        CatalogResolver().load_file("item", path)


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(CatalogError, match="Cannot load catalog file"):
        CatalogResolver().load_file("item", tmp_path / "missing.json")
