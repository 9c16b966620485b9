"""
Holdings lists published by the mathematics library as PDF files.

Each PDF is downloaded once per run and its text extracted with pypdf.
A list that cannot be fetched or read is skipped.
"""

from __future__ import annotations

import io
import logging
from typing import List, Optional, Sequence

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from bookmeter.application.services.pacing import PacingPolicy
from bookmeter.domain.errors import TransportError
from bookmeter.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

PDF_DOWNLOAD_TIMEOUT_SECONDS = 180

DEFAULT_MATH_LIBRARY_PDFS = (
    "https://mathlib-sophia.opac.jp/opac/file/view/1965-2023_j.pdf",
    "https://mathlib-sophia.opac.jp/opac/file/view/202404-202503.pdf",
    "https://mathlib-sophia.opac.jp/opac/file/view/1965-2023_F_1.pdf",
)


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        pages.append(page.extract_text() or "")
    return "\n".join(pages)


class MathLibraryPdfSource:
    def __init__(
        self,
        urls: Sequence[str] = DEFAULT_MATH_LIBRARY_PDFS,
        *,
        client: Optional[APIClient] = None,
        pacing: Optional[PacingPolicy] = None,
    ):
        self.urls = list(urls)
        self._client = client or APIClient(timeout=PDF_DOWNLOAD_TIMEOUT_SECONDS, max_retries=0)
        self._owns_client = client is None
        self._pacing = pacing

    async def fetch_texts(self) -> List[str]:
        texts: List[str] = []
        for url in self.urls:
            try:
                data = await self._client.get_bytes(url, timeout=PDF_DOWNLOAD_TIMEOUT_SECONDS)
                if not data:
                    logger.warning(f"math library list missing: {url}")
                    continue
                texts.append(extract_pdf_text(data))
                logger.info(f"math library list loaded: {url}")
            except (TransportError, PdfReadError, ValueError) as e:
                logger.warning(f"math library list unreadable, skipped: {url}: {e}")
            finally:
                if self._pacing is not None:
                    await self._pacing.wait("mathlib")
        return texts

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()
