"""Data models for accessibility catalogs.

A catalog groups pre-authored alternate representations (cards) of a piece of content
under one identifier. The JSON layout uses camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, LetterCase, config, dataclass_json

__all__: list[str] = ["AccessibilityCatalog", "CatalogEntry", "CatalogStatistics", "ResolvedCatalog"]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class CatalogEntry(DataClassJsonMixin):
    """One alternate representation, e.g. the spoken form of a formula.

    Attributes:
        catalog_type (str): Representation type ("spoken", "braille", ...).
        content (str): Alternate content.
        language (str | None): Language code, None when language neutral.
    """

    # The JSON key is "catalog"
    catalog_type: str = field(metadata=config(field_name="catalog"))
    content: str = ""
    language: str | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class AccessibilityCatalog(DataClassJsonMixin):
    identifier: str
    cards: list[CatalogEntry] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedCatalog:
    """Result of a catalog lookup.

    Attributes:
        catalog_id (str): Identifier that was looked up.
        content (str): Alternate content.
        language (str | None): Language of the matched card.
        catalog_type (str): Representation type of the matched card.
        scope (str): Scope the catalog was found in.
    """

    catalog_id: str
    content: str
    language: str | None
    catalog_type: str
    scope: str


@dataclass(frozen=True)
class CatalogStatistics:
    catalogs_per_scope: dict[str, int]
    total_cards: int
    languages: frozenset[str]
    catalog_types: frozenset[str]
