"""CatalogRepositoryPort — persisted catalogs per list type."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from bookmeter.domain.book import Catalog, ListType


@runtime_checkable
class CatalogRepositoryPort(Protocol):
    def load_catalog(self, list_type: ListType) -> Optional[Catalog]:
        """None when nothing has been stored for the list yet."""
        ...

    def sync(self, list_type: ListType, catalog: Catalog):
        """Make the stored list equal to ``catalog`` in one transaction."""
        ...
