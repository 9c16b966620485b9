# src/bookmeter/application/workflows/sync_pipeline.py
"""
List synchronization pipeline.

Orchestrates, for one reading list:
1. Loading the previously stored catalog
2. Enriching the freshly scraped catalog (or carrying stored records forward)
3. Diffing against the stored catalog
4. Writing the new catalog in one transaction when anything changed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from bookmeter.application.ports import CatalogRepositoryPort
from bookmeter.application.workflows.enrichment_pipeline import EnrichmentPipeline
from bookmeter.domain.book import BookRecord, Catalog, ListType
from bookmeter.domain.catalog_diff import CatalogDiff, diff_catalogs
from bookmeter.utils.logging_config import LogFiles, Logger, new_run_id, set_run_id

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncProgress:
    phase: str
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class SyncConfig:
    list_type: ListType
    skip_comparison: bool = False
    skip_enrichment: bool = False
    dry_run: bool = False


@dataclass
class SyncFinalResult:
    run_id: str
    list_type: ListType
    status: str  # synced, unchanged, dry_run
    diff: CatalogDiff
    catalog: Catalog
    write_stats: Optional[Dict[str, Any]] = None
    enrichment_stats: Optional[Dict[str, Any]] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "list_type": self.list_type.value,
            "status": self.status,
            "records": len(self.catalog),
            "diff": self.diff.to_dict(),
            "write_stats": self.write_stats,
            "enrichment_stats": self.enrichment_stats,
            "duration_seconds": round(self.duration_seconds, 3),
        }


def carry_forward(previous: Optional[Catalog], scraped: Catalog) -> Catalog:
    """Scraped keys, with the stored record substituted wherever one exists."""
    if previous is None:
        return scraped
    records = []
    for key, record in scraped.items():
        stored: Optional[BookRecord] = previous.get(key)
        records.append(stored if stored is not None else record)
    return Catalog(records)


def keep_stored_descriptions(previous: Optional[Catalog], current: Catalog) -> Catalog:
    """Blank descriptions take the stored text, as the store itself does on write."""
    if previous is None:
        return current
    kept = []
    for key, record in current.items():
        stored = previous.get(key)
        if stored is not None and not record.description.strip() and stored.description.strip():
            kept.append(record.with_updates(description=stored.description))
    return current.merge(kept) if kept else current


class SyncPipeline:
    """
    Enrich, diff and persist one reading list.

    Persistence failures propagate to the caller; nothing is reported as
    synced unless the transaction committed.
    """

    def __init__(self, store: CatalogRepositoryPort, enrichment: Optional[EnrichmentPipeline] = None):
        self.store = store
        self.enrichment = enrichment

    async def run(
        self,
        scraped: Catalog,
        config: SyncConfig,
        *,
        run_id: Optional[str] = None,
    ) -> AsyncGenerator[SyncProgress | SyncFinalResult, None]:
        list_type = ListType(config.list_type)
        run_id = set_run_id(run_id or new_run_id(list_type.value))
        start_time = _utcnow()

        yield SyncProgress(phase="Loading", message=f"Loading stored {list_type.value} list...")
        previous = self.store.load_catalog(list_type)

        enrichment_stats = None
        if config.skip_enrichment or self.enrichment is None:
            yield SyncProgress(phase="CarryForward", message="Reusing stored records...")
            current = carry_forward(previous, scraped)
        else:
            yield SyncProgress(
                phase="Enriching",
                message=f"Enriching {len(scraped)} records...",
                details={"records": len(scraped)},
            )
            current = await self.enrichment.enrich(scraped)
            enrichment_stats = self.enrichment.stats.to_dict()

        current = keep_stored_descriptions(previous, current)
        diff = diff_catalogs(previous, current, skip_comparison=config.skip_comparison)
        yield SyncProgress(phase="Diffing", message=diff.summary(), details=diff.to_dict())
        logger.info(f"{list_type.value}: {diff.summary()}")

        write_stats = None
        if not diff.has_changes:
            status = "unchanged"
        elif config.dry_run:
            status = "dry_run"
        else:
            yield SyncProgress(phase="Storing", message=f"Writing {len(current)} records...")
            write_stats = self.store.sync(list_type, current).to_dict()
            status = "synced"

        Logger.info(f"{list_type.value} run finished: {status} ({diff.summary()})", file=LogFiles.SYNC)
        yield SyncFinalResult(
            run_id=run_id,
            list_type=list_type,
            status=status,
            diff=diff,
            catalog=current,
            write_stats=write_stats,
            enrichment_stats=enrichment_stats,
            duration_seconds=(_utcnow() - start_time).total_seconds(),
        )

    async def run_sync(
        self,
        scraped: Catalog,
        config: SyncConfig,
        *,
        run_id: Optional[str] = None,
    ) -> SyncFinalResult:
        result: Optional[SyncFinalResult] = None
        async for item in self.run(scraped, config, run_id=run_id):
            if isinstance(item, SyncFinalResult):
                result = item
        if result is None:
            raise RuntimeError("Pipeline completed without final result")
        return result

    async def close(self) -> None:
        if self.enrichment is not None:
            await self.enrichment.close()
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    async def __aenter__(self) -> "SyncPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
