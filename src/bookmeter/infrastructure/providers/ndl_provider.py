# src/bookmeter/infrastructure/providers/ndl_provider.py
"""
National Diet Library Search provider.

The OpenSearch endpoint answers with an RSS feed. An ISBN query that
returns no item is retried once by title and author when the record
already carries them.

API: https://ndlsearch.ndl.go.jp/help/api/specifications
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Dict, Optional

from bookmeter.application.services.pacing import PacingPolicy
from bookmeter.domain.book import (
    BookRecord,
    ProviderResult,
    is_unresolved,
    merge_bibliography,
    not_found_status,
    stamp_status,
)
from bookmeter.domain.book_identity import is_isbn, normalize_isbn
from bookmeter.domain.errors import ProviderError, TransportError
from bookmeter.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

NAMESPACES = {
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcndl": "http://ndl.go.jp/dcndl/terms/",
}


def _text(item: ET.Element, path: str) -> str:
    node = item.find(path, NAMESPACES)
    if node is None or node.text is None:
        return ""
    return node.text.strip()


def parse_opensearch_item(xml_text: str) -> Optional[Dict[str, str]]:
    """Bibliographic fields of the first item in an OpenSearch feed."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ValueError(f"malformed OpenSearch response: {e}") from e

    item = root.find("./channel/item")
    if item is None:
        return None

    title = _text(item, "title")
    if not title:
        return None
    volume = _text(item, "dcndl:volume")
    series = _text(item, "dcndl:seriesTitle")
    if volume:
        title = f"{title} {volume}"
    if series:
        title = f"{title} / {series}"

    author = _text(item, "author") or _text(item, "dc:creator")
    return {
        "title": title,
        "author": author,
        "publisher": _text(item, "dc:publisher"),
        "published_date": _text(item, "pubDate"),
    }


class NDLProvider:
    NDL_SEARCH_URL = "https://ndlsearch.ndl.go.jp/api/opensearch"

    def __init__(self, client: Optional[APIClient] = None, *, pacing: Optional[PacingPolicy] = None):
        self._client = client or APIClient()
        self._owns_client = client is None
        self._pacing = pacing

    @property
    def source(self) -> str:
        return "NDL"

    def supports(self, identifier: str) -> bool:
        return is_isbn(identifier)

    async def _search(self, params: Dict[str, str], identifier: str) -> Optional[Dict[str, str]]:
        try:
            text = await self._client.get_text(self.NDL_SEARCH_URL, params=params)
        except TransportError as e:
            raise ProviderError(self.source, identifier, str(e)) from e
        if not text:
            return None
        try:
            return parse_opensearch_item(text)
        except ValueError as e:
            raise ProviderError(self.source, identifier, str(e)) from e

    async def lookup(self, record: BookRecord) -> ProviderResult:
        isbn = normalize_isbn(record.identifier)
        values = await self._search({"isbn": isbn}, isbn)

        if values is None and not is_unresolved(record.title) and not is_unresolved(record.author):
            if self._pacing is not None:
                await self._pacing.wait(self.source)
            logger.debug(f"NDL: no ISBN match for {isbn}, retrying by title/author")
            values = await self._search({"title": record.title, "creator": record.author}, isbn)

        if values is None:
            return ProviderResult(
                stamp_status(record, not_found_status(self.source)), found=False, source=self.source
            )
        return ProviderResult(merge_bibliography(record, values), found=True, source=self.source)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
