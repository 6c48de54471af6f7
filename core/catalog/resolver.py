"""Accessibility catalog resolution.

Catalogs provide pre-authored alternate representations of content, for example the spoken
form of a formula. They are held per scope, with scopes ordered from broadest to most
specific (by default "assessment" then "item"). A lookup searches the most specific scope
first, so an item-level catalog overrides an assessment-level catalog with the same id.

Resolution never fails: `resolve_text` returns the caller's text unchanged on a miss.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from marshmallow.exceptions import ValidationError

from models.catalog_models import AccessibilityCatalog, CatalogEntry, CatalogStatistics, ResolvedCatalog
from utils.file_utils import FileUtils, FileUtilsError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable, Sequence
    from pathlib import Path

__all__: list[str] = ["CatalogError", "CatalogResolver"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_SCOPES: Final[tuple[str, ...]] = ("assessment", "item")
DEFAULT_LANGUAGE: Final[str] = "en-US"
SPOKEN: Final[str] = "spoken"
CATALOG_SUFFIXES: Final[list[str]] = [".json"]


class CatalogError(Exception):
    """A catalog source could not be loaded."""


class CatalogResolver:
    """Resolves catalog ids to alternate content across ordered scopes.

    Attributes:
        scopes (tuple[str, ...]): Scope names, broadest first.
        default_language (str): Language tried when the requested language has no card.
    """

    def __init__(self, scopes: Sequence[str] = DEFAULT_SCOPES, default_language: str = DEFAULT_LANGUAGE) -> None:
        if not scopes:
            msg = "At least one catalog scope is required"
            raise ValueError(msg)
        if len(set(scopes)) != len(scopes):
            msg = f"Duplicate catalog scopes: {list(scopes)}"
            raise ValueError(msg)
        self.scopes: tuple[str, ...] = tuple(scopes)
        self.default_language: str = default_language
        self._catalogs: dict[str, dict[str, AccessibilityCatalog]] = {scope: {} for scope in self.scopes}

    def _scope(self, scope: str) -> dict[str, AccessibilityCatalog]:
        try:
            return self._catalogs[scope]
        except KeyError:
            msg: str = f"Unknown catalog scope '{scope}'; expected one of {list(self.scopes)}"
            raise ValueError(msg) from None

    def _most_specific_first(self) -> Iterable[tuple[str, dict[str, AccessibilityCatalog]]]:
        for scope in reversed(self.scopes):
            yield scope, self._catalogs[scope]

    def add_catalogs(self, scope: str, catalogs: Iterable[AccessibilityCatalog]) -> int:
        """Index catalogs under a scope, replacing catalogs with the same identifier.

        Returns:
            int: Number of catalogs added.
        """
        target: dict[str, AccessibilityCatalog] = self._scope(scope)
        count: int = 0
        for catalog in catalogs:
            if catalog.identifier in target:
                logger.debug("Replacing catalog '%s' in scope '%s'", catalog.identifier, scope)
            target[catalog.identifier] = catalog
            count += 1
        logger.debug("Added %d catalogs to scope '%s'", count, scope)
        return count

    def load_file(self, scope: str, path: str | Path) -> int:
        """Load catalogs from a JSON file holding a list of catalogs (or a single one).

        Raises:
            CatalogError: If the file cannot be read or does not contain valid catalogs.
        """
        resolved: Path = FileUtils.resolve_path(path)
        try:
            FileUtils.validate_file_path(resolved, CATALOG_SUFFIXES)
        except FileUtilsError as err:
            msg: str = f"Cannot load catalog file: {err}"
            raise CatalogError(msg) from err
        try:
            raw: object = FileUtils.load_json(resolved)
            items: list[object] = raw if isinstance(raw, list) else [raw]
            catalogs: list[AccessibilityCatalog] = [
                AccessibilityCatalog.from_dict(item, infer_missing=True)  # type: ignore[arg-type]
                for item in items
            ]
        except OSError as err:
            msg = f"Cannot read catalog file '{resolved}': {err}"
            raise CatalogError(msg) from err
        except (ValueError, ValidationError, TypeError, KeyError, AttributeError) as err:
            msg = f"Invalid catalog file '{resolved}': {err}"
            raise CatalogError(msg) from err
        logger.info("Loaded %d catalogs from '%s' into scope '%s'", len(catalogs), resolved, scope)
        return self.add_catalogs(scope, catalogs)

    def clear_scope(self, scope: str) -> None:
        self._scope(scope).clear()

    def reset(self) -> None:
        for catalogs in self._catalogs.values():
            catalogs.clear()

    def has_catalog(self, catalog_id: str) -> bool:
        return any(catalog_id in catalogs for catalogs in self._catalogs.values())

    def get_alternative(
        self,
        catalog_id: str,
        *,
        catalog_type: str = SPOKEN,
        language: str | None = None,
        use_fallback: bool = True,
    ) -> ResolvedCatalog | None:
        """Find the best matching card for a catalog id.

        Scopes are searched from most specific to broadest. Within a catalog the card
        matching type and language wins; with fallback enabled, a card in the default
        language and then any card of the type are accepted.

        Args:
            catalog_id (str): Catalog identifier.
            catalog_type (str): Representation type, "spoken" by default.
            language (str | None): Requested language.
            use_fallback (bool): Accept cards in other languages.

        Returns:
            ResolvedCatalog | None: The match, or None when no scope has one.
        """
        for scope, catalogs in self._most_specific_first():
            catalog: AccessibilityCatalog | None = catalogs.get(catalog_id)
            if catalog is None:
                continue
            card: CatalogEntry | None = self._find_card(catalog, catalog_type, language, use_fallback=use_fallback)
            if card is not None:
                return ResolvedCatalog(
                    catalog_id=catalog_id,
                    content=card.content,
                    language=card.language,
                    catalog_type=card.catalog_type,
                    scope=scope,
                )
        return None

    def _find_card(
        self, catalog: AccessibilityCatalog, catalog_type: str, language: str | None, *, use_fallback: bool
    ) -> CatalogEntry | None:
        typed: list[CatalogEntry] = [card for card in catalog.cards if card.catalog_type == catalog_type]
        if language:
            for card in typed:
                if card.language == language:
                    return card
        if not use_fallback:
            return None
        for card in typed:
            if card.language == self.default_language:
                return card
        return typed[0] if typed else None

    def resolve(self, catalog_id: str, language: str | None = None) -> str | None:
        """Spoken-form content for a catalog id, or None when there is none."""
        resolved: ResolvedCatalog | None = self.get_alternative(catalog_id, language=language)
        return resolved.content if resolved else None

    def resolve_text(self, text: str, catalog_id: str | None, language: str | None = None) -> str:
        """Replace text with its spoken-form alternative if the catalog has one.

        Args:
            text (str): Text the caller wants spoken.
            catalog_id (str | None): Catalog identifier; None skips the lookup.
            language (str | None): Requested language.

        Returns:
            str: The alternative content, or `text` unchanged.
        """
        if not catalog_id:
            return text
        content: str | None = self.resolve(catalog_id, language)
        if content is None:
            logger.debug("No spoken catalog for '%s'; using original text", catalog_id)
            return text
        logger.debug("Using spoken catalog for '%s'", catalog_id)
        return content

    def get_all_alternatives(self, catalog_id: str) -> list[ResolvedCatalog]:
        """Every card for an id; a more specific scope hides cards of the same type and language."""
        results: list[ResolvedCatalog] = []
        seen: set[tuple[str, str | None]] = set()
        for scope, catalogs in self._most_specific_first():
            catalog: AccessibilityCatalog | None = catalogs.get(catalog_id)
            if catalog is None:
                continue
            for card in catalog.cards:
                key: tuple[str, str | None] = (card.catalog_type, card.language)
                if key in seen:
                    continue
                seen.add(key)
                results.append(
                    ResolvedCatalog(
                        catalog_id=catalog_id,
                        content=card.content,
                        language=card.language,
                        catalog_type=card.catalog_type,
                        scope=scope,
                    )
                )
        return results

    def get_all_catalog_ids(self) -> list[str]:
        ids: dict[str, None] = {}
        for _scope, catalogs in self._most_specific_first():
            ids.update(dict.fromkeys(catalogs))
        return list(ids)

    def get_catalogs_by_type(self, catalog_type: str) -> list[str]:
        return [
            catalog_id
            for catalog_id in self.get_all_catalog_ids()
            if any(alt.catalog_type == catalog_type for alt in self.get_all_alternatives(catalog_id))
        ]

    def get_statistics(self) -> CatalogStatistics:
        languages: set[str] = set()
        types: set[str] = set()
        total_cards: int = 0
        for catalogs in self._catalogs.values():
            for catalog in catalogs.values():
                for card in catalog.cards:
                    total_cards += 1
                    types.add(card.catalog_type)
                    if card.language:
                        languages.add(card.language)
        return CatalogStatistics(
            catalogs_per_scope={scope: len(self._catalogs[scope]) for scope in self.scopes},
            total_cards=total_cards,
            languages=frozenset(languages),
            catalog_types=frozenset(types),
        )
