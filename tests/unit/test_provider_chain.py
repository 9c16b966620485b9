import pytest

from bookmeter.application.services.provider_chain import ProviderChain
from bookmeter.domain.book import (
    INVALID_ISBN,
    BookRecord,
    Catalog,
    ProviderResult,
    merge_bibliography,
    not_found_status,
    stamp_status,
)
from bookmeter.domain.errors import ProviderError

DOMESTIC = "4003101014"
FOREIGN = "0262033844"


class FakeProvider:
    def __init__(self, source, known=None, fail=False):
        self._source = source
        self.known = known or {}
        self.fail = fail
        self.calls = []
        self.closed = False

    @property
    def source(self):
        return self._source

    def supports(self, identifier):
        return identifier.isdigit() or identifier.endswith("X")

    async def lookup(self, record):
        self.calls.append(record.identifier)
        if self.fail:
            raise ProviderError(self._source, record.identifier, "HTTP 503")
        values = self.known.get(record.identifier)
        if values is None:
            return ProviderResult(stamp_status(record, not_found_status(self._source)), False, self._source)
        return ProviderResult(merge_bibliography(record, values), True, self._source)

    async def close(self):
        self.closed = True


class FakeBulkProvider(FakeProvider):
    def __init__(self, source, known=None, fail_on_call=None):
        super().__init__(source, known)
        self.fail_on_call = fail_on_call
        self.batches = []

    async def lookup_many(self, records):
        self.batches.append([r.key for r in records])
        if self.fail_on_call is not None and len(self.batches) == self.fail_on_call:
            raise ProviderError(self._source, "batch", "timeout")
        return {r.key: await self.lookup(r) for r in records}


def _book(key, identifier):
    return BookRecord(key=key, identifier=identifier)


@pytest.mark.asyncio
async def test_first_provider_hit_short_circuits(no_pacing):
    first = FakeProvider("NDL", {DOMESTIC: {"title": "First"}})
    second = FakeProvider("ISBNdb", {DOMESTIC: {"title": "Second"}})
    chain = ProviderChain([first, second], pacing=no_pacing)

    result = await chain.resolve(_book("a", DOMESTIC))

    assert result.found
    assert result.source == "NDL"
    assert result.record.title == "First"
    assert second.calls == []


@pytest.mark.asyncio
async def test_provider_one_finds_a_provider_two_finds_b(no_pacing):
    isbn_a, isbn_b = "4003101014", "4061498460"
    first = FakeProvider("NDL", {isbn_a: {"title": "Book A", "author": "Author A"}})
    second = FakeProvider("ISBNdb", {isbn_b: {"title": "Book B", "publisher": "Pub B"}})
    chain = ProviderChain([first, second], pacing=no_pacing)

    result_a = await chain.resolve(_book("A", isbn_a))
    result_b = await chain.resolve(_book("B", isbn_b))

    assert (result_a.source, result_a.record.title, result_a.record.author) == ("NDL", "Book A", "Author A")
    assert (result_b.source, result_b.record.title, result_b.record.publisher) == ("ISBNdb", "Book B", "Pub B")
    assert result_b.record.author == ""
    assert second.calls == [isbn_b]


@pytest.mark.asyncio
async def test_order_swaps_for_foreign_isbns(no_pacing):
    ndl = FakeProvider("NDL")
    isbndb = FakeProvider("ISBNdb")
    google = FakeProvider("GoogleBooks")
    chain = ProviderChain([ndl, isbndb, google], pacing=no_pacing)

    assert [p.source for p in chain.order_for(DOMESTIC)] == ["NDL", "ISBNdb", "GoogleBooks"]
    assert [p.source for p in chain.order_for(FOREIGN)] == ["ISBNdb", "NDL", "GoogleBooks"]


@pytest.mark.asyncio
async def test_not_found_everywhere_carries_last_status(no_pacing, recording_sleep):
    chain = ProviderChain([FakeProvider("NDL"), FakeProvider("ISBNdb")], pacing=no_pacing)

    result = await chain.resolve(_book("a", DOMESTIC))

    assert not result.found
    assert result.record.title == "Not_found_in_ISBNdb"
    assert len(recording_sleep.delays) == 2


@pytest.mark.asyncio
async def test_provider_errors_are_isolated(no_pacing):
    broken = FakeProvider("NDL", fail=True)
    working = FakeProvider("ISBNdb", {DOMESTIC: {"title": "Recovered"}})
    chain = ProviderChain([broken, working], pacing=no_pacing)

    result = await chain.resolve(_book("a", DOMESTIC))

    assert result.found
    assert result.record.title == "Recovered"
    assert broken.calls == [DOMESTIC]


@pytest.mark.asyncio
async def test_all_providers_failing_stamps_api_error(no_pacing):
    chain = ProviderChain([FakeProvider("NDL", fail=True), FakeProvider("ISBNdb", fail=True)], pacing=no_pacing)

    result = await chain.resolve(_book("a", DOMESTIC))

    assert not result.found
    assert result.record.title == "ISBNdb_API_Error"


@pytest.mark.asyncio
async def test_store_codes_pass_through_untouched(no_pacing, recording_sleep):
    provider = FakeProvider("NDL")
    chain = ProviderChain([provider], pacing=no_pacing)
    record = BookRecord(key="a", identifier="B00ABCDEF1", title="Scraped")

    result = await chain.resolve(record)

    assert result.record == record
    assert not result.found
    assert provider.calls == []
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_invalid_identifier_is_stamped_without_lookups(no_pacing):
    provider = FakeProvider("NDL")
    chain = ProviderChain([provider], pacing=no_pacing)

    result = await chain.resolve(_book("a", ""))

    assert result.record.title == INVALID_ISBN
    assert result.source == "invalid"
    assert provider.calls == []


@pytest.mark.asyncio
async def test_bulk_lookup_chunks_and_isolates_failed_chunk(no_pacing, recording_sleep):
    isbns = ["4003101014", "4061498460", "0262033844", "4774142234", "080442957X"]
    catalog = Catalog(_book(f"k{i}", isbn) for i, isbn in enumerate(isbns))
    bulk = FakeBulkProvider("OpenBD", {isbn: {"title": f"T{isbn}"} for isbn in isbns}, fail_on_call=2)
    chain = ProviderChain([], bulk_provider=bulk, pacing=no_pacing, bulk_chunk_size=2)

    results = await chain.bulk_lookup(catalog)

    assert bulk.batches == [["k0", "k1"], ["k2", "k3"], ["k4"]]
    assert set(results) == {"k0", "k1", "k4"}
    assert all(r.found for r in results.values())
    assert len(recording_sleep.delays) == 3


@pytest.mark.asyncio
async def test_bulk_lookup_skips_store_codes(no_pacing):
    catalog = Catalog([_book("a", "B00ABCDEF1"), _book("b", DOMESTIC)])
    bulk = FakeBulkProvider("OpenBD", {DOMESTIC: {"title": "T"}})
    bulk.supports = lambda identifier: identifier == DOMESTIC
    chain = ProviderChain([], bulk_provider=bulk, pacing=no_pacing)

    results = await chain.bulk_lookup(catalog)

    assert list(results) == ["b"]


@pytest.mark.asyncio
async def test_close_closes_each_provider_once(no_pacing):
    shared = FakeProvider("NDL")
    chain = ProviderChain([shared, shared], bulk_provider=None, pacing=no_pacing)
    await chain.close()
    assert shared.closed
