"""
Metadata provider integration tests with mocked API responses.

Tests OpenBDProvider, NDLProvider, ISBNdbProvider and GoogleBooksProvider.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from bookmeter.domain.book import BookRecord
from bookmeter.domain.errors import ProviderError, TransportError
from bookmeter.infrastructure.providers import (
    GoogleBooksProvider,
    ISBNdbProvider,
    NDLProvider,
    OpenBDProvider,
)


OPENBD_RESPONSE = [
    {
        "summary": {
            "isbn": "9784003101018",
            "title": "解析概論",
            "volume": "改訂第3版",
            "series": "岩波文庫",
            "author": "高木貞治／著",
            "publisher": "岩波書店",
            "pubdate": "1983-09",
        }
    },
    None,
]

NDL_RSS_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:dcndl="http://ndl.go.jp/dcndl/terms/">
  <channel>
    <title>NDL Search</title>
    <item>
      <title>代数学</title>
      <dcndl:volume>1</dcndl:volume>
      <dcndl:seriesTitle>現代数学への入門</dcndl:seriesTitle>
      <author>桂利行 著</author>
      <dc:creator>桂, 利行</dc:creator>
      <dc:publisher>東京大学出版会</dc:publisher>
      <pubDate>Thu, 01 Apr 2004 00:00:00 +0900</pubDate>
    </item>
    <item>
      <title>Second item is ignored</title>
    </item>
  </channel>
</rss>
"""

NDL_EMPTY_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>NDL Search</title></channel></rss>
"""

ISBNDB_RESPONSE = {
    "book": {
        "title": "Algebraic Geometry",
        "authors": ["Robin Hartshorne"],
        "publisher": "Springer",
        "date_published": "1977",
        "synopsis": "Graduate text.",
    }
}

GOOGLE_BOOKS_RESPONSE = {
    "totalItems": 1,
    "items": [
        {
            "volumeInfo": {
                "title": "Categories for the Working Mathematician",
                "subtitle": "Second Edition",
                "authors": ["Saunders Mac Lane"],
                "publisher": "Springer",
                "publishedDate": "1998-09-25",
                "description": "An introduction to category theory.",
            }
        }
    ],
}


def _mock_client(**methods):
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, value)
    client.close = AsyncMock()
    return client


def _book(key, identifier, **kwargs):
    return BookRecord(key=f"https://bookmeter.com/books/{key}", identifier=identifier, **kwargs)


class TestOpenBDProvider:
    """Tests for OpenBDProvider."""

    @pytest.mark.asyncio
    async def test_lookup_many_aligned_response(self):
        """Entries map back to records in request order; null means not found."""
        client = _mock_client(get_json=AsyncMock(return_value=OPENBD_RESPONSE))
        provider = OpenBDProvider(client)
        found, missing = _book("1", "4003101014"), _book("2", "9780387953854")

        results = await provider.lookup_many([found, missing])

        params = client.get_json.call_args.kwargs["params"]
        assert params == {"isbn": "4003101014,9780387953854"}
        assert results[found.key].found
        assert results[found.key].record.title == "解析概論 改訂第3版 (岩波文庫)"
        assert results[found.key].record.publisher == "岩波書店"
        assert not results[missing.key].found
        assert results[missing.key].record.title == "Not_found_in_OpenBD"

    @pytest.mark.asyncio
    async def test_misaligned_response_raises(self):
        client = _mock_client(get_json=AsyncMock(return_value=[None]))
        provider = OpenBDProvider(client)

        with pytest.raises(ProviderError):
            await provider.lookup_many([_book("1", "4003101014"), _book("2", "4061498460")])

    @pytest.mark.asyncio
    async def test_transport_error_becomes_provider_error(self):
        client = _mock_client(get_json=AsyncMock(side_effect=TransportError("HTTP 503", status=503)))
        provider = OpenBDProvider(client)

        with pytest.raises(ProviderError) as exc_info:
            await provider.lookup(_book("1", "4003101014"))
        assert exc_info.value.source == "OpenBD"

    @pytest.mark.asyncio
    async def test_shared_client_is_not_closed(self):
        client = _mock_client()
        await OpenBDProvider(client).close()
        client.close.assert_not_called()


class TestNDLProvider:
    """Tests for NDLProvider."""

    @pytest.mark.asyncio
    async def test_lookup_parses_first_item(self):
        client = _mock_client(get_text=AsyncMock(return_value=NDL_RSS_RESPONSE))
        provider = NDLProvider(client)

        result = await provider.lookup(_book("1", "978-4-13-062951-2"))

        assert result.found
        assert result.record.title == "代数学 1 / 現代数学への入門"
        assert result.record.author == "桂利行 著"
        assert result.record.publisher == "東京大学出版会"
        assert client.get_text.call_args.kwargs["params"] == {"isbn": "9784130629512"}

    @pytest.mark.asyncio
    async def test_retries_by_title_and_author(self, no_pacing, recording_sleep):
        client = _mock_client(get_text=AsyncMock(side_effect=[NDL_EMPTY_RESPONSE, NDL_RSS_RESPONSE]))
        provider = NDLProvider(client, pacing=no_pacing)

        result = await provider.lookup(_book("1", "4130629514", title="代数学", author="桂利行"))

        assert result.found
        assert client.get_text.call_args.kwargs["params"] == {"title": "代数学", "creator": "桂利行"}
        assert len(recording_sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_no_item_is_not_found(self):
        client = _mock_client(get_text=AsyncMock(return_value=NDL_EMPTY_RESPONSE))
        provider = NDLProvider(client)

        result = await provider.lookup(_book("1", "4130629514"))

        assert not result.found
        assert result.record.author == "Not_found_in_NDL"
        assert client.get_text.call_count == 1

    @pytest.mark.asyncio
    async def test_malformed_xml_raises(self):
        client = _mock_client(get_text=AsyncMock(return_value="<rss><channel>"))
        provider = NDLProvider(client)

        with pytest.raises(ProviderError):
            await provider.lookup(_book("1", "4130629514"))


class TestISBNdbProvider:
    """Tests for ISBNdbProvider."""

    def test_requires_api_key(self):
        assert not ISBNdbProvider(None, _mock_client()).supports("4003101014")
        assert ISBNdbProvider("key", _mock_client()).supports("4003101014")

    @pytest.mark.asyncio
    async def test_lookup_sends_authorization_header(self):
        client = _mock_client(get_json=AsyncMock(return_value=ISBNDB_RESPONSE))
        provider = ISBNdbProvider("secret", client)

        result = await provider.lookup(_book("1", "0387902449"))

        args, kwargs = client.get_json.call_args
        assert args[0].endswith("/book/0387902449")
        assert kwargs["headers"] == {"Authorization": "secret"}
        assert result.found
        assert result.record.author == "Robin Hartshorne"
        assert result.record.description == "Graduate text."

    @pytest.mark.asyncio
    async def test_not_found_responses(self):
        for data in (None, {"errorMessage": "Not Found"}):
            client = _mock_client(get_json=AsyncMock(return_value=data))
            result = await ISBNdbProvider("secret", client).lookup(_book("1", "0387902449"))
            assert not result.found
            assert result.record.title == "Not_found_in_ISBNdb"


class TestGoogleBooksProvider:
    """Tests for GoogleBooksProvider."""

    @pytest.mark.asyncio
    async def test_lookup_joins_subtitle(self):
        client = _mock_client(get_json=AsyncMock(return_value=GOOGLE_BOOKS_RESPONSE))
        provider = GoogleBooksProvider(None, client)

        result = await provider.lookup(_book("1", "0387984038"))

        assert result.found
        assert result.source == "GoogleBooks"
        assert result.record.title == "Categories for the Working Mathematician Second Edition"
        assert result.record.published_date == "1998-09-25"
        assert client.get_json.call_args.kwargs["params"] == {"q": "isbn:0387984038"}

    @pytest.mark.asyncio
    async def test_api_key_is_sent_when_configured(self):
        client = _mock_client(get_json=AsyncMock(return_value=GOOGLE_BOOKS_RESPONSE))
        await GoogleBooksProvider("gkey", client).lookup(_book("1", "0387984038"))
        assert client.get_json.call_args.kwargs["params"]["key"] == "gkey"

    @pytest.mark.asyncio
    async def test_zero_items_is_not_found(self):
        client = _mock_client(get_json=AsyncMock(return_value={"totalItems": 0}))
        result = await GoogleBooksProvider(None, client).lookup(_book("1", "0387984038"))
        assert not result.found
        assert result.record.publisher == "Not_found_in_GoogleBooks"
