"""
Provider chain for bibliographic enrichment.

A bulk provider is consulted first for every ISBN in the catalog; records it
misses are then tried against single-record providers in priority order until
one finds the book.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from bookmeter.application.ports import BiblioProviderPort, BulkBiblioProviderPort
from bookmeter.application.services.pacing import PacingPolicy
from bookmeter.domain.book import (
    INVALID_ISBN,
    BookRecord,
    Catalog,
    ProviderResult,
    api_error_status,
    stamp_status,
)
from bookmeter.domain.book_identity import IdentifierKind, classify_identifier, is_domestic_isbn

logger = logging.getLogger(__name__)

DEFAULT_BULK_CHUNK_SIZE = 100
SKIPPED_SOURCE = "skipped"
INVALID_SOURCE = "invalid"


class ProviderChain:
    """
    Ordered fallback over metadata providers.

    ``providers`` is the order used for domestic ISBNs. For any other
    identifier the two providers named in ``swap_for_foreign`` trade places.
    """

    def __init__(
        self,
        providers: Sequence[BiblioProviderPort],
        *,
        bulk_provider: Optional[BulkBiblioProviderPort] = None,
        pacing: Optional[PacingPolicy] = None,
        swap_for_foreign: Tuple[str, str] = ("NDL", "ISBNdb"),
        bulk_chunk_size: int = DEFAULT_BULK_CHUNK_SIZE,
    ):
        self.providers = list(providers)
        self.bulk_provider = bulk_provider
        self.pacing = pacing or PacingPolicy()
        self.swap_for_foreign = swap_for_foreign
        self.bulk_chunk_size = max(1, bulk_chunk_size)

    def order_for(self, identifier: str) -> List[BiblioProviderPort]:
        ordered = list(self.providers)
        if is_domestic_isbn(identifier):
            return ordered
        names = [provider.source for provider in ordered]
        first, second = self.swap_for_foreign
        if first in names and second in names:
            i, j = names.index(first), names.index(second)
            ordered[i], ordered[j] = ordered[j], ordered[i]
        return ordered

    async def bulk_lookup(self, catalog: Catalog) -> Dict[str, ProviderResult]:
        """
        Run the bulk provider over every record it supports.

        A failed chunk is logged and its records are simply absent from the
        result, leaving them to the per-record chain.
        """
        if self.bulk_provider is None:
            return {}
        targets = [r for r in catalog.values() if self.bulk_provider.supports(r.identifier)]
        results: Dict[str, ProviderResult] = {}
        for start in range(0, len(targets), self.bulk_chunk_size):
            chunk = targets[start : start + self.bulk_chunk_size]
            try:
                results.update(await self.bulk_provider.lookup_many(chunk))
            except Exception as e:
                logger.warning(
                    f"{self.bulk_provider.source} bulk lookup failed for "
                    f"{len(chunk)} records: {e}"
                )
            finally:
                await self.pacing.wait(self.bulk_provider.source)

        found = sum(1 for r in results.values() if r.found)
        logger.info(f"{self.bulk_provider.source}: {found}/{len(targets)} records found in bulk")
        return results

    async def resolve(self, record: BookRecord) -> ProviderResult:
        """
        Try providers in order until one finds the record.

        Store codes pass through untouched. Records without a usable
        identifier get the invalid marker. A provider that raises counts as a
        miss; if every attempt raised, the record carries that provider's
        error marker.
        """
        identifier = record.identifier
        kind = classify_identifier(identifier)
        if kind is IdentifierKind.STORE_CODE:
            return ProviderResult(record, found=False, source=SKIPPED_SOURCE)
        if kind is IdentifierKind.INVALID:
            return ProviderResult(stamp_status(record, INVALID_ISBN), found=False, source=INVALID_SOURCE)

        current = record
        last_source = ""
        answered = False
        for provider in self.order_for(identifier):
            if not provider.supports(identifier):
                continue
            last_source = provider.source
            try:
                result = await provider.lookup(current)
            except Exception as e:
                logger.warning(f"{provider.source} lookup failed for {identifier}: {e}")
                continue
            finally:
                await self.pacing.wait(provider.source)

            answered = True
            current = result.record
            if result.found:
                logger.debug(f"{identifier} resolved by {provider.source}")
                return ProviderResult(current, found=True, source=provider.source)

        if last_source and not answered:
            current = stamp_status(current, api_error_status(last_source))
        return ProviderResult(current, found=False, source=last_source)

    async def close(self) -> None:
        closed = set()
        for provider in [self.bulk_provider, *self.providers]:
            if provider is None or id(provider) in closed:
                continue
            closed.add(id(provider))
            await provider.close()
