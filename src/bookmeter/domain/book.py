# src/bookmeter/domain/book.py
"""
Book catalog domain models.

Contains the records that flow through enrichment and synchronization:
- BookRecord: one book on a reading list, keyed by its Bookmeter URL
- Catalog: an immutable keyed collection of BookRecords
- ProviderResult: outcome of a single metadata lookup
- ListType: the two Bookmeter lists that are synchronized
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from bookmeter.domain.library import LIBRARY_TAGS, LibraryHolding

INVALID_ISBN = "INVALID_ISBN"
BIBLIOGRAPHIC_FIELDS = ("title", "author", "publisher", "published_date")

_NOT_FOUND_PREFIX = "Not_found_in_"
_API_ERROR_SUFFIX = "_API_Error"


class ListType(str, Enum):
    WISH = "wish"
    STACKED = "stacked"


def not_found_status(source: str) -> str:
    return f"{_NOT_FOUND_PREFIX}{source}"


def api_error_status(source: str) -> str:
    return f"{source}{_API_ERROR_SUFFIX}"


def is_status_marker(value: Optional[str]) -> bool:
    """True for the placeholder strings stamped on failed lookups."""
    text = value or ""
    return (
        text == INVALID_ISBN
        or text.startswith(_NOT_FOUND_PREFIX)
        or text.endswith(_API_ERROR_SUFFIX)
    )


def is_unresolved(value: Optional[str]) -> bool:
    return not (value or "").strip() or is_status_marker(value)


def _default_holdings() -> Dict[str, LibraryHolding]:
    return {tag: LibraryHolding() for tag in LIBRARY_TAGS}


@dataclass(frozen=True)
class BookRecord:
    """
    One book on a reading list.

    ``key`` is the book's Bookmeter URL and never changes. ``identifier`` is an
    ISBN-10, ISBN-13 or store product code; it may be empty when the scraper
    found nothing usable.
    """

    key: str
    identifier: str = ""
    title: str = ""
    author: str = ""
    publisher: str = ""
    published_date: str = ""
    description: str = ""
    holdings: Mapping[str, LibraryHolding] = field(default_factory=_default_holdings)
    mathlib_opac_link: str = ""

    def with_updates(self, **changes: Any) -> "BookRecord":
        return replace(self, **changes)

    def with_holding(self, tag: str, holding: LibraryHolding) -> "BookRecord":
        holdings = dict(self.holdings)
        holdings[tag] = holding
        return replace(self, holdings=holdings)

    def holding(self, tag: str) -> LibraryHolding:
        return self.holdings.get(tag) or LibraryHolding()

    def bibliography(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in BIBLIOGRAPHIC_FIELDS}

    @property
    def is_resolved(self) -> bool:
        return not is_unresolved(self.title)

    def to_dict(self) -> Dict[str, Any]:
        """Flat row form, matching the exported table columns."""
        row: Dict[str, Any] = {
            "bookmeter_url": self.key,
            "isbn_or_asin": self.identifier,
            "book_title": self.title,
            "author": self.author,
            "publisher": self.publisher,
            "published_date": self.published_date,
        }
        for tag in LIBRARY_TAGS:
            holding = self.holding(tag)
            row[f"exist_in_{tag}"] = "Yes" if holding.held else "No"
            row[f"{tag}_opac"] = holding.opac_link or ""
        row["mathlib_opac"] = self.mathlib_opac_link
        row["description"] = self.description
        return row

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BookRecord":
        key = str(data.get("bookmeter_url") or data.get("key") or "").strip()
        if not key:
            raise ValueError("book row has no bookmeter_url")
        holdings = _default_holdings()
        for tag in LIBRARY_TAGS:
            held = data.get(f"exist_in_{tag}")
            holdings[tag] = LibraryHolding(
                held=held is True or str(held).strip().lower() in ("yes", "true", "1"),
                opac_link=(data.get(f"{tag}_opac") or None),
            )
        return cls(
            key=key,
            identifier=str(data.get("isbn_or_asin") or data.get("identifier") or "").strip(),
            title=str(data.get("book_title") or data.get("title") or ""),
            author=str(data.get("author") or ""),
            publisher=str(data.get("publisher") or ""),
            published_date=str(data.get("published_date") or ""),
            description=str(data.get("description") or ""),
            holdings=holdings,
            mathlib_opac_link=str(data.get("mathlib_opac") or data.get("sophia_mathlib_opac") or ""),
        )


def merge_bibliography(
    record: BookRecord,
    values: Mapping[str, Optional[str]],
    *,
    fill_gaps_only: bool = False,
) -> BookRecord:
    """
    Apply provider values to a record.

    Empty values never replace existing ones. With ``fill_gaps_only`` only
    fields that are empty or carry a status marker are written; otherwise a
    found record also drops stale status markers the provider had no value for.
    """
    updates: Dict[str, str] = {}
    for name in BIBLIOGRAPHIC_FIELDS:
        new = (values.get(name) or "").strip()
        old = getattr(record, name)
        if not new:
            if not fill_gaps_only and is_status_marker(old):
                updates[name] = ""
            continue
        if fill_gaps_only and not is_unresolved(old):
            continue
        updates[name] = new

    description = (values.get("description") or "").strip()
    if description and not (fill_gaps_only and record.description.strip()):
        updates["description"] = description

    return replace(record, **updates) if updates else record


def stamp_status(record: BookRecord, status: str) -> BookRecord:
    """Write a status marker into every bibliographic field that has no real value."""
    updates = {name: status for name in BIBLIOGRAPHIC_FIELDS if is_unresolved(getattr(record, name))}
    return replace(record, **updates) if updates else record


class Catalog(Mapping[str, BookRecord]):
    """
    Immutable mapping of Bookmeter URL to BookRecord.

    Every derived catalog is a new object; the source is left untouched.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[BookRecord] = ()):
        data: Dict[str, BookRecord] = {}
        for record in records:
            if not record.key:
                raise ValueError("catalog records need a key")
            data[record.key] = record
        self._records = data

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "Catalog":
        return cls(BookRecord.from_dict(row) for row in rows)

    def __getitem__(self, key: str) -> BookRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Catalog({len(self)} records)"

    def replace(self, record: BookRecord) -> "Catalog":
        return self.merge([record])

    def merge(self, records: Iterable[BookRecord]) -> "Catalog":
        return Catalog([*self._records.values(), *records])

    def records(self) -> List[BookRecord]:
        return list(self._records.values())

    def to_rows(self) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self._records.values()]


@dataclass(frozen=True)
class ProviderResult:
    """
    Outcome of one lookup.

    ``found`` is False both when the provider answered "no such book" and when
    the record was skipped; ``record`` always carries whatever is known.
    """

    record: BookRecord
    found: bool
    source: str
