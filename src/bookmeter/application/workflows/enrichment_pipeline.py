# src/bookmeter/application/workflows/enrichment_pipeline.py
"""
Catalog enrichment.

Orchestrates, for one catalog:
1. Building the math library index (once per run)
2. Bulk metadata lookup
3. Per-record provider chain for records the bulk pass missed
4. Holdings resolution for every record

Per-record work runs as tasks, never more than ``concurrency`` at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from bookmeter.application.services import (
    HoldingsResolver,
    MathLibraryIndex,
    PacingPolicy,
    ProviderChain,
    build_math_library_index,
)
from bookmeter.domain.book import BookRecord, Catalog, ProviderResult
from bookmeter.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5

IndexLoader = Callable[[], Awaitable[MathLibraryIndex]]


@dataclass
class EnrichmentStats:
    total: int = 0
    found_by_source: Counter = field(default_factory=Counter)
    unresolved: int = 0
    failed: int = 0
    peak_in_flight: int = 0
    math_index_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "found_by_source": dict(self.found_by_source),
            "unresolved": self.unresolved,
            "failed": self.failed,
            "peak_in_flight": self.peak_in_flight,
            "math_index_size": self.math_index_size,
        }


class EnrichmentPipeline:
    def __init__(
        self,
        chain: ProviderChain,
        holdings: HoldingsResolver,
        *,
        index_loader: Optional[IndexLoader] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        clients: Sequence[Any] = (),
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.chain = chain
        self.holdings = holdings
        self.concurrency = concurrency
        self._index_loader = index_loader
        self._clients = list(clients)
        self._in_flight = 0
        self.stats = EnrichmentStats()

    async def _load_index(self) -> MathLibraryIndex:
        if self._index_loader is None:
            return MathLibraryIndex.empty()
        try:
            return await self._index_loader()
        except Exception as e:
            logger.warning(f"math library index failed to load: {e}")
            return MathLibraryIndex.empty()

    async def enrich(self, catalog: Catalog) -> Catalog:
        """Return a new catalog with every record enriched; ``catalog`` is not modified."""
        self.stats = EnrichmentStats(total=len(catalog))
        self._in_flight = 0
        if not catalog:
            return catalog

        index = await self._load_index()
        self.stats.math_index_size = len(index)
        bulk_results = await self.chain.bulk_lookup(catalog)

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = []
        for record in catalog.values():
            await semaphore.acquire()
            task = asyncio.create_task(self._enrich_one(record, bulk_results.get(record.key), index))
            task.add_done_callback(lambda _: semaphore.release())
            tasks.append(task)
        enriched = await asyncio.gather(*tasks)

        Logger.info(
            f"enriched {self.stats.total} records: found={dict(self.stats.found_by_source)} "
            f"unresolved={self.stats.unresolved} failed={self.stats.failed}",
            file=LogFiles.ENRICH,
        )
        return Catalog(enriched)

    async def _enrich_one(
        self,
        record: BookRecord,
        bulk_result: Optional[ProviderResult],
        index: MathLibraryIndex,
    ) -> BookRecord:
        self._in_flight += 1
        self.stats.peak_in_flight = max(self.stats.peak_in_flight, self._in_flight)
        try:
            if bulk_result is not None and bulk_result.found:
                result = bulk_result
            else:
                result = await self.chain.resolve(bulk_result.record if bulk_result else record)

            if result.found:
                self.stats.found_by_source[result.source] += 1
            else:
                self.stats.unresolved += 1
            return await self.holdings.resolve(result.record, index)
        except Exception as e:
            self.stats.failed += 1
            logger.exception(f"enrichment failed for {record.key}")
            Logger.error(f"enrichment failed for {record.key}: {e}", file=LogFiles.ERROR)
            return record
        finally:
            self._in_flight -= 1

    async def close(self) -> None:
        await self.chain.close()
        await self.holdings.close()
        for client in self._clients:
            await client.close()

    async def __aenter__(self) -> "EnrichmentPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_enrichment_pipeline(settings: Any) -> EnrichmentPipeline:
    """Wire the production providers and library clients from EnrichmentSettings."""
    from bookmeter.infrastructure.api_clients.base import APIClient
    from bookmeter.infrastructure.libraries import CiNiiClient, MathLibraryPdfSource
    from bookmeter.infrastructure.providers import (
        GoogleBooksProvider,
        ISBNdbProvider,
        NDLProvider,
        OpenBDProvider,
    )

    pacing = PacingPolicy(settings.pacing_base_seconds, settings.pacing_jitter)
    client = APIClient()

    chain = ProviderChain(
        [
            NDLProvider(client, pacing=pacing),
            ISBNdbProvider(settings.isbndb_api_key, client),
            GoogleBooksProvider(settings.google_books_api_key, client),
        ],
        bulk_provider=OpenBDProvider(client),
        pacing=pacing,
        bulk_chunk_size=settings.bulk_chunk_size,
    )
    holdings = HoldingsResolver(
        CiNiiClient(settings.cinii_app_id, client),
        settings.targets,
        pacing=pacing,
        math_library_tag=settings.math_library_tag,
        backfill_policy=settings.backfill_policy,
    )

    async def load_index() -> MathLibraryIndex:
        source = MathLibraryPdfSource(settings.math_library_pdfs, pacing=pacing)
        try:
            return await build_math_library_index(source)
        finally:
            await source.close()

    pipeline = EnrichmentPipeline(
        chain,
        holdings,
        index_loader=load_index if settings.math_library_pdfs else None,
        concurrency=settings.concurrency,
        clients=[client],
    )
    return pipeline
