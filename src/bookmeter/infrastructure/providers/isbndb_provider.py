# src/bookmeter/infrastructure/providers/isbndb_provider.py
"""
ISBNdb provider.

Requires an API key sent in the Authorization header. Without a key the
provider declines every identifier so the chain skips it.

API: https://isbndb.com/apidocs/v2
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

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


class ISBNdbProvider:
    ISBNDB_API_URL = "https://api2.isbndb.com/book"

    def __init__(self, api_key: Optional[str] = None, client: Optional[APIClient] = None):
        self.api_key = api_key
        self._client = client or APIClient()
        self._owns_client = client is None

    @property
    def source(self) -> str:
        return "ISBNdb"

    def supports(self, identifier: str) -> bool:
        return bool(self.api_key) and is_isbn(identifier)

    async def lookup(self, record: BookRecord) -> ProviderResult:
        isbn = normalize_isbn(record.identifier)
        try:
            data = await self._client.get_json(
                f"{self.ISBNDB_API_URL}/{isbn}",
                headers={"Authorization": self.api_key or ""},
            )
        except TransportError as e:
            raise ProviderError(self.source, isbn, str(e)) from e

        values = self._parse(data)
        if values is None:
            return ProviderResult(
                stamp_status(record, not_found_status(self.source)), found=False, source=self.source
            )
        return ProviderResult(merge_bibliography(record, values), found=True, source=self.source)

    @staticmethod
    def _parse(data: Any) -> Optional[Dict[str, str]]:
        if not isinstance(data, dict) or data.get("errorMessage"):
            return None
        book = data.get("book") or {}
        title = (book.get("title") or "").strip()
        if not title:
            return None
        authors = book.get("authors") or []
        if isinstance(authors, str):
            authors = [authors]
        return {
            "title": title,
            "author": ", ".join(a for a in authors if a),
            "publisher": book.get("publisher") or "",
            "published_date": str(book.get("date_published") or ""),
            "description": book.get("synopsis") or "",
        }

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
