"""LibraryCatalogPort — union-catalog search and OPAC link probing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from bookmeter.domain.book import BookRecord
from bookmeter.domain.library import LibraryTarget


@dataclass(frozen=True)
class CatalogSearchHit:
    """First match from a union-catalog search scoped to one library."""

    ncid: str
    title: str = ""
    author: str = ""
    publisher: str = ""
    published_date: str = ""


@runtime_checkable
class LibraryCatalogPort(Protocol):
    async def search(self, record: BookRecord, target: LibraryTarget) -> Optional[CatalogSearchHit]:
        """None when the library holds no matching record."""
        ...

    async def resolve_link(self, url: str) -> Optional[str]:
        """Follow redirects and return the final URL, or None on failure."""
        ...

    async def close(self) -> None: ...
