"""In-memory set of ISBNs held by the mathematics library."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from bookmeter.application.ports import MathLibrarySourcePort
from bookmeter.domain.book_identity import (
    extract_isbns,
    is_isbn,
    normalize_isbn,
    to_isbn10,
    to_isbn13,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MathLibraryIndex:
    """Normalized ISBN-10 and ISBN-13 forms of every listed book."""

    isbns: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def empty(cls) -> "MathLibraryIndex":
        return cls()

    @classmethod
    def from_isbns(cls, values: Iterable[str]) -> "MathLibraryIndex":
        forms = set()
        for value in values:
            if not is_isbn(value):
                continue
            forms.add(normalize_isbn(value))
            forms.add(to_isbn13(value))
            isbn10 = to_isbn10(value)
            if isbn10:
                forms.add(isbn10)
        return cls(frozenset(forms))

    @classmethod
    def from_texts(cls, texts: Iterable[str]) -> "MathLibraryIndex":
        return cls.from_isbns(isbn for text in texts for isbn in extract_isbns(text))

    def __len__(self) -> int:
        return len(self.isbns)

    def __bool__(self) -> bool:
        return bool(self.isbns)

    def contains(self, identifier: Optional[str]) -> bool:
        if not is_isbn(identifier):
            return False
        return normalize_isbn(identifier) in self.isbns


async def build_math_library_index(source: Optional[MathLibrarySourcePort]) -> MathLibraryIndex:
    """Fetch and index the holdings lists; any failure yields an empty index."""
    if source is None:
        return MathLibraryIndex.empty()
    try:
        texts = await source.fetch_texts()
    except Exception as e:
        logger.warning(f"math library lists unavailable, continuing without them: {e}")
        return MathLibraryIndex.empty()
    index = MathLibraryIndex.from_texts(texts)
    logger.info(f"math library index built with {len(index)} ISBN forms")
    return index
