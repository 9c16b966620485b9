# src/bookmeter/infrastructure/providers/openbd_provider.py
"""
OpenBD provider.

Bulk metadata for Japanese books. One request answers a comma-separated
list of ISBNs; the response array is aligned with the request and holds
null for every ISBN it does not know.

API: https://openbd.jp/
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from bookmeter.domain.book import (
    BookRecord,
    ProviderResult,
    merge_bibliography,
    not_found_status,
    stamp_status,
)
from bookmeter.domain.book_identity import is_isbn, normalize_isbn
from bookmeter.domain.errors import ProviderError, TransportError
from bookmeter.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)


class OpenBDProvider:
    OPENBD_API_URL = "https://api.openbd.jp/v1/get"

    def __init__(self, client: Optional[APIClient] = None):
        self._client = client or APIClient()
        self._owns_client = client is None

    @property
    def source(self) -> str:
        return "OpenBD"

    def supports(self, identifier: str) -> bool:
        return is_isbn(identifier)

    async def lookup(self, record: BookRecord) -> ProviderResult:
        results = await self.lookup_many([record])
        return results[record.key]

    async def lookup_many(self, records: Sequence[BookRecord]) -> Dict[str, ProviderResult]:
        if not records:
            return {}
        isbns = [normalize_isbn(r.identifier) for r in records]
        try:
            data = await self._client.get_json(self.OPENBD_API_URL, params={"isbn": ",".join(isbns)})
        except TransportError as e:
            raise ProviderError(self.source, ",".join(isbns[:3]), str(e)) from e

        if data is None:
            data = [None] * len(records)
        if not isinstance(data, list) or len(data) != len(records):
            raise ProviderError(self.source, ",".join(isbns[:3]), "response not aligned with request")

        results: Dict[str, ProviderResult] = {}
        for record, entry in zip(records, data):
            values = self._parse_entry(entry)
            if values is None:
                results[record.key] = ProviderResult(
                    stamp_status(record, not_found_status(self.source)), found=False, source=self.source
                )
            else:
                results[record.key] = ProviderResult(
                    merge_bibliography(record, values), found=True, source=self.source
                )
        return results

    @staticmethod
    def _parse_entry(entry: Any) -> Optional[Dict[str, str]]:
        if not isinstance(entry, dict):
            return None
        summary = entry.get("summary") or {}
        title = (summary.get("title") or "").strip()
        if not title:
            return None
        volume = (summary.get("volume") or "").strip()
        series = (summary.get("series") or "").strip()
        if volume:
            title = f"{title} {volume}"
        if series:
            title = f"{title} ({series})"
        return {
            "title": title,
            "author": summary.get("author") or "",
            "publisher": summary.get("publisher") or "",
            "published_date": summary.get("pubdate") or "",
        }

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
