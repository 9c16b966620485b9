"""
Library client integration tests with mocked API responses.

Tests CiNiiClient and MathLibraryPdfSource.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from pypdf.errors import PdfReadError

from bookmeter.domain.book import BookRecord
from bookmeter.domain.errors import ConfigError, ProviderError, TransportError
from bookmeter.domain.library import LibraryTarget
from bookmeter.infrastructure.libraries import CiNiiClient, MathLibraryPdfSource
from bookmeter.infrastructure.libraries.cinii_client import parse_search_response


CINII_RESPONSE = {
    "@graph": [
        {
            "opensearch:totalResults": "1",
            "items": [
                {
                    "@id": "https://ci.nii.ac.jp/ncid/BN00105587",
                    "dc:title": "解析概論",
                    "dc:creator": "高木貞治著",
                    "dc:publisher": ["岩波書店"],
                    "dc:pubDate": "1983",
                }
            ],
        }
    ]
}

CINII_EMPTY_RESPONSE = {"@graph": [{"opensearch:totalResults": "0"}]}

TARGET = LibraryTarget(tag="utokyo", cinii_kid="KI000221", opac_base_url="https://opac.u.example")


def _mock_client(**methods):
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, value)
    client.close = AsyncMock()
    return client


def _book(identifier, **kwargs):
    return BookRecord(key="https://bookmeter.com/books/1", identifier=identifier, **kwargs)


class TestCiNiiParsing:
    def test_first_item_ncid(self):
        hit = parse_search_response(CINII_RESPONSE)
        assert hit.ncid == "BN00105587"
        assert hit.title == "解析概論"
        assert hit.publisher == "岩波書店"

    def test_graph_as_object(self):
        data = {"@graph": {"items": {"@id": "https://ci.nii.ac.jp/ncid/BA1234"}}}
        assert parse_search_response(data).ncid == "BA1234"

    @pytest.mark.parametrize("data", [None, [], {}, CINII_EMPTY_RESPONSE, {"@graph": [{"items": []}]}])
    def test_no_hit(self, data):
        assert parse_search_response(data) is None

    def test_item_without_ncid_is_still_a_hit(self):
        data = {"@graph": [{"items": [{"@id": "https://ci.nii.ac.jp/other/123", "dc:title": "T"}]}]}
        hit = parse_search_response(data)
        assert hit is not None
        assert hit.ncid == ""
        assert hit.title == "T"


class TestCiNiiClient:
    """Tests for CiNiiClient."""

    @pytest.mark.asyncio
    async def test_isbn_search_scoped_to_library(self):
        client = _mock_client(get_json=AsyncMock(return_value=CINII_RESPONSE))
        cinii = CiNiiClient("app", client)

        hit = await cinii.search(_book("4-00-310101-4"), TARGET)

        assert hit.ncid == "BN00105587"
        assert client.get_json.call_args.kwargs["params"] == {
            "kid": "KI000221",
            "format": "json",
            "appid": "app",
            "isbn": "4003101014",
        }

    @pytest.mark.asyncio
    async def test_store_code_searches_by_title_and_author(self):
        client = _mock_client(get_json=AsyncMock(return_value=CINII_EMPTY_RESPONSE))
        cinii = CiNiiClient("app", client)

        hit = await cinii.search(_book("B00ABCDEF1", title="Sheaves", author="Kashiwara"), TARGET)

        assert hit is None
        params = client.get_json.call_args.kwargs["params"]
        assert (params["title"], params["author"]) == ("Sheaves", "Kashiwara")

    @pytest.mark.asyncio
    async def test_store_code_without_title_is_not_searched(self):
        client = _mock_client(get_json=AsyncMock())
        assert await CiNiiClient("app", client).search(_book("B00ABCDEF1"), TARGET) is None
        client.get_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_app_id(self):
        with pytest.raises(ConfigError):
            await CiNiiClient(None, _mock_client()).search(_book("4003101014"), TARGET)

    @pytest.mark.asyncio
    async def test_transport_errors_become_provider_errors(self):
        error = TransportError("HTTP 500", status=500)
        client = _mock_client(get_json=AsyncMock(side_effect=error), final_url=AsyncMock(side_effect=error))
        cinii = CiNiiClient("app", client)

        with pytest.raises(ProviderError):
            await cinii.search(_book("4003101014"), TARGET)
        with pytest.raises(ProviderError):
            await cinii.resolve_link(TARGET.isbn_link("4003101014"))

    @pytest.mark.asyncio
    async def test_resolve_link_returns_final_url(self):
        final = "https://opac.u.example/opac/opac_details/?bibid=1"
        client = _mock_client(final_url=AsyncMock(return_value=final))
        assert await CiNiiClient("app", client).resolve_link("https://opac.u.example/x") == final


class TestMathLibraryPdfSource:
    """Tests for MathLibraryPdfSource."""

    @pytest.mark.asyncio
    async def test_unreadable_lists_are_skipped(self, no_pacing, recording_sleep):
        urls = ["https://m/a.pdf", "https://m/b.pdf", "https://m/c.pdf", "https://m/d.pdf"]
        client = _mock_client(
            get_bytes=AsyncMock(side_effect=[b"%PDF-a", TransportError("timeout"), None, b"%PDF-d"])
        )
        source = MathLibraryPdfSource(urls, client=client, pacing=no_pacing)

        with patch(
            "bookmeter.infrastructure.libraries.math_library_source.extract_pdf_text",
            side_effect=["4003101014", PdfReadError("bad xref")],
        ):
            texts = await source.fetch_texts()

        assert texts == ["4003101014"]
        assert len(recording_sleep.delays) == 4
        client.get_bytes.assert_awaited_with("https://m/d.pdf", timeout=180)
