from bookmeter.application.workflows.enrichment_pipeline import (
    EnrichmentPipeline,
    EnrichmentStats,
    build_enrichment_pipeline,
)
from bookmeter.application.workflows.sync_pipeline import (
    SyncConfig,
    SyncFinalResult,
    SyncPipeline,
    SyncProgress,
)

__all__ = [
    "EnrichmentPipeline",
    "EnrichmentStats",
    "build_enrichment_pipeline",
    "SyncConfig",
    "SyncFinalResult",
    "SyncPipeline",
    "SyncProgress",
]
