# src/bookmeter/infrastructure/libraries/cinii_client.py
"""
CiNii Books client.

Searches the union catalog scoped to one institution (``kid``) and probes
a library's OpenURL resolver. ISBN records are searched by ISBN; store-code
records fall back to title and author.

API: https://support.nii.ac.jp/ja/cib/api/b_opensearch
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from bookmeter.application.ports import CatalogSearchHit
from bookmeter.domain.book import BookRecord, is_unresolved
from bookmeter.domain.book_identity import is_isbn, normalize_isbn
from bookmeter.domain.errors import ConfigError, ProviderError, TransportError
from bookmeter.domain.library import LibraryTarget
from bookmeter.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

NCID_PREFIX = "https://ci.nii.ac.jp/ncid/"


def _first(value: Any) -> Any:
    """OpenSearch JSON-LD returns a single object or a list of them."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_text(value: Any) -> str:
    value = _first(value)
    if isinstance(value, dict):
        value = value.get("@value") or value.get("foaf:name") or ""
    return str(value or "").strip()


def parse_search_response(data: Any) -> Optional[CatalogSearchHit]:
    if not isinstance(data, dict):
        return None
    graph = _first(data.get("@graph"))
    if not isinstance(graph, dict):
        return None
    item = _first(graph.get("items"))
    if not isinstance(item, dict):
        return None
    # Any item means held; the NCID is empty when @id is not an NCID URL.
    record_id = str(item.get("@id") or "")
    ncid = record_id[len(NCID_PREFIX) :].strip("/") if record_id.startswith(NCID_PREFIX) else ""
    return CatalogSearchHit(
        ncid=ncid,
        title=_as_text(item.get("dc:title") or item.get("title")),
        author=_as_text(item.get("dc:creator")),
        publisher=_as_text(item.get("dc:publisher")),
        published_date=_as_text(item.get("dc:pubDate") or item.get("prism:publicationDate")),
    )


class CiNiiClient:
    CINII_API_URL = "https://ci.nii.ac.jp/books/opensearch/search"

    def __init__(self, app_id: Optional[str], client: Optional[APIClient] = None):
        self.app_id = app_id
        self._client = client or APIClient()
        self._owns_client = client is None

    @property
    def source(self) -> str:
        return "CiNii"

    def _query(self, record: BookRecord, target: LibraryTarget) -> Optional[Dict[str, str]]:
        params = {"kid": target.cinii_kid, "format": "json", "appid": self.app_id or ""}
        if is_isbn(record.identifier):
            params["isbn"] = normalize_isbn(record.identifier)
            return params
        if is_unresolved(record.title):
            return None
        params["title"] = record.title
        if not is_unresolved(record.author):
            params["author"] = record.author
        return params

    async def search(self, record: BookRecord, target: LibraryTarget) -> Optional[CatalogSearchHit]:
        if not self.app_id:
            raise ConfigError("CiNii application id is not configured")
        params = self._query(record, target)
        if params is None:
            return None
        try:
            data = await self._client.get_json(self.CINII_API_URL, params=params)
        except TransportError as e:
            raise ProviderError(self.source, record.identifier or record.key, str(e)) from e
        hit = parse_search_response(data)
        if hit is not None:
            logger.debug(f"CiNii {target.tag}: {record.identifier} -> {hit.ncid}")
        return hit

    async def resolve_link(self, url: str) -> Optional[str]:
        try:
            return await self._client.final_url(url)
        except TransportError as e:
            raise ProviderError(self.source, url, str(e)) from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
