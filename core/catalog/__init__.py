"""Accessibility catalog package."""

from __future__ import annotations

from core.catalog.resolver import CatalogError, CatalogResolver

__all__: list[str] = ["CatalogError", "CatalogResolver"]
