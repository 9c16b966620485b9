"""
Library holdings domain models.

- LibraryTarget: a university library checked for holdings
- LibraryHolding: held flag plus the catalog link proving it
- BackfillPolicy: how catalog-search metadata may fill bibliographic gaps
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import quote, urlencode

# Storage carries one held/link column pair per tag.
LIBRARY_TAGS: Tuple[str, ...] = ("utokyo", "sophia")

MATH_LIBRARY_SEARCH_URL = "https://mathlib-sophia.opac.jp/opac/Advanced_search/search"


class BackfillPolicy(str, Enum):
    FILL_GAPS = "fill_gaps"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class LibraryHolding:
    held: bool = False
    opac_link: Optional[str] = None


@dataclass(frozen=True)
class LibraryTarget:
    """A library whose holdings are resolved for every book."""

    tag: str
    cinii_kid: str
    opac_base_url: str
    record_marker: str = "bibid"

    def ncid_link(self, ncid: str) -> str:
        return f"{self.opac_base_url.rstrip('/')}/opac/opac_openurl?ncid={quote(ncid)}"

    def isbn_link(self, isbn: str) -> str:
        return f"{self.opac_base_url.rstrip('/')}/opac/opac_openurl?isbn={quote(isbn)}"

    def title_author_link(self, title: str, author: str) -> str:
        query = urlencode({"title": title, "author": author})
        return f"{self.opac_base_url.rstrip('/')}/opac/opac_openurl?{query}"


def math_library_link(isbn13: str) -> str:
    query = urlencode(
        {"isbn": isbn13, "mtl1": 1, "mtl2": 1, "mtl3": 1, "mtl4": 1, "mtl5": 1}
    )
    return f"{MATH_LIBRARY_SEARCH_URL}?{query}"
