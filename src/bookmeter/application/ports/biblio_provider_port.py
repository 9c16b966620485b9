# src/bookmeter/application/ports/biblio_provider_port.py
"""
Bibliographic provider port interfaces.

A provider turns an identifier into title, author, publisher and date.
"""

from __future__ import annotations

from typing import Dict, Protocol, Sequence, runtime_checkable

from bookmeter.domain.book import BookRecord, ProviderResult


@runtime_checkable
class BiblioProviderPort(Protocol):
    """Single-record metadata provider."""

    @property
    def source(self) -> str:
        """Provider name used in logs and status markers."""
        ...

    def supports(self, identifier: str) -> bool:
        """Whether this provider can look the identifier up at all."""
        ...

    async def lookup(self, record: BookRecord) -> ProviderResult:
        """
        Look up one record.

        Returns found=False when the provider answered but has no such book.
        Raises ProviderError when the lookup itself failed.
        """
        ...

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""
        ...


@runtime_checkable
class BulkBiblioProviderPort(BiblioProviderPort, Protocol):
    """Provider that answers many identifiers in one request."""

    async def lookup_many(self, records: Sequence[BookRecord]) -> Dict[str, ProviderResult]:
        """Results keyed by record key, one per input record."""
        ...
