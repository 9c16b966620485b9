# src/bookmeter/infrastructure/providers/google_books_provider.py
"""
Google Books provider.

Last resort in the chain. The API key is optional; anonymous requests
share a lower quota.

API: https://developers.google.com/books/docs/v1/using
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


class GoogleBooksProvider:
    GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(self, api_key: Optional[str] = None, client: Optional[APIClient] = None):
        self.api_key = api_key
        self._client = client or APIClient()
        self._owns_client = client is None

    @property
    def source(self) -> str:
        return "GoogleBooks"

    def supports(self, identifier: str) -> bool:
        return is_isbn(identifier)

    async def lookup(self, record: BookRecord) -> ProviderResult:
        isbn = normalize_isbn(record.identifier)
        params = {"q": f"isbn:{isbn}"}
        if self.api_key:
            params["key"] = self.api_key
        try:
            data = await self._client.get_json(self.GOOGLE_BOOKS_API_URL, params=params)
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
        if not isinstance(data, dict) or not data.get("totalItems"):
            return None
        items = data.get("items") or []
        if not items:
            return None
        info = items[0].get("volumeInfo") or {}
        title = (info.get("title") or "").strip()
        if not title:
            return None
        subtitle = (info.get("subtitle") or "").strip()
        if subtitle:
            title = f"{title} {subtitle}"
        return {
            "title": title,
            "author": ", ".join(info.get("authors") or []),
            "publisher": info.get("publisher") or "",
            "published_date": info.get("publishedDate") or "",
            "description": info.get("description") or "",
        }

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
