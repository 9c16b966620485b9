"""
Holdings resolution against university libraries.

For each configured library the union catalog is searched first; when it has
no record, the library's own link resolver is probed and a redirect to a
bibliographic record page counts as a hit.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from bookmeter.application.ports import CatalogSearchHit, LibraryCatalogPort
from bookmeter.application.services.math_library_index import MathLibraryIndex
from bookmeter.application.services.pacing import PacingPolicy
from bookmeter.domain.book import BookRecord, is_unresolved, merge_bibliography
from bookmeter.domain.book_identity import is_isbn, normalize_isbn, to_isbn13
from bookmeter.domain.library import (
    BackfillPolicy,
    LibraryHolding,
    LibraryTarget,
    math_library_link,
)

logger = logging.getLogger(__name__)


class HoldingsResolver:
    def __init__(
        self,
        catalog: LibraryCatalogPort,
        targets: Sequence[LibraryTarget],
        *,
        pacing: Optional[PacingPolicy] = None,
        math_library_tag: Optional[str] = "sophia",
        backfill_policy: BackfillPolicy = BackfillPolicy.FILL_GAPS,
    ):
        self.catalog = catalog
        self.targets = list(targets)
        self.pacing = pacing or PacingPolicy()
        self.math_library_tag = math_library_tag
        self.backfill_policy = backfill_policy

    async def resolve(
        self,
        record: BookRecord,
        math_index: Optional[MathLibraryIndex] = None,
    ) -> BookRecord:
        """Return a copy of ``record`` with holdings set for every target."""
        current = record
        for target in self.targets:
            holding, hit = await self._resolve_target(current, target)
            current = current.with_holding(target.tag, holding)
            if hit is not None:
                current = self._backfill(current, hit)

        if math_index is not None:
            current = self._apply_math_library(current, math_index)
        return current

    async def _resolve_target(
        self, record: BookRecord, target: LibraryTarget
    ) -> Tuple[LibraryHolding, Optional[CatalogSearchHit]]:
        try:
            hit = await self.catalog.search(record, target)
        except Exception as e:
            logger.warning(f"{target.tag}: catalog search failed for {record.key}: {e}")
            return LibraryHolding(held=False), None
        finally:
            await self.pacing.wait(f"cinii:{target.tag}")

        probe_url = self._probe_url(record, target)
        if hit is not None:
            link = target.ncid_link(hit.ncid) if hit.ncid else probe_url
            return LibraryHolding(held=True, opac_link=link), hit

        if probe_url is None:
            return LibraryHolding(held=False), None

        try:
            final_url = await self.catalog.resolve_link(probe_url)
        except Exception as e:
            logger.warning(f"{target.tag}: opac probe failed for {record.key}: {e}")
            final_url = None
        finally:
            await self.pacing.wait(f"opac:{target.tag}")

        if final_url and target.record_marker in final_url:
            return LibraryHolding(held=True, opac_link=probe_url), None
        return LibraryHolding(held=False), None

    @staticmethod
    def _probe_url(record: BookRecord, target: LibraryTarget) -> Optional[str]:
        # Same query shape as the catalog search: ISBN, else title and author.
        if is_isbn(record.identifier):
            return target.isbn_link(normalize_isbn(record.identifier))
        if is_unresolved(record.title):
            return None
        author = "" if is_unresolved(record.author) else record.author
        return target.title_author_link(record.title, author)

    def _backfill(self, record: BookRecord, hit: CatalogSearchHit) -> BookRecord:
        values = {
            "title": hit.title,
            "author": hit.author,
            "publisher": hit.publisher,
            "published_date": hit.published_date,
        }
        if self.backfill_policy is BackfillPolicy.OVERWRITE:
            return merge_bibliography(record, values)
        return merge_bibliography(record, values, fill_gaps_only=True)

    def _apply_math_library(self, record: BookRecord, index: MathLibraryIndex) -> BookRecord:
        if not index.contains(record.identifier):
            return record
        link = math_library_link(to_isbn13(record.identifier))
        updated = record.with_updates(mathlib_opac_link=link)
        tag = self.math_library_tag
        if tag and not updated.holding(tag).held:
            previous = updated.holding(tag)
            updated = updated.with_holding(tag, LibraryHolding(held=True, opac_link=previous.opac_link or link))
        return updated

    async def close(self) -> None:
        await self.catalog.close()
