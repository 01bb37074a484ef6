"""Cascade behaviour of the PHIVOLCS -> USGS pipeline."""

import asyncio

import httpx
import pytest
import pytest_asyncio

from ingest.errors import (
    AllSourcesFailedError,
    EmptyResultError,
    ParseError,
    TransportError,
    UpstreamStatusError,
)
from ingest.pipeline import QuakePipeline
from schemas.models import Source
from tests.helpers import EMPTY_PAGE_HTML, PHIVOLCS_HTML, USGS_PAYLOAD, mock_client


def html(body):
    return lambda request: httpx.Response(200, text=body)


def geojson(payload):
    return lambda request: httpx.Response(200, json=payload)


def status(code):
    return lambda request: httpx.Response(code)


async def hang(request: httpx.Request):
    await asyncio.sleep(5)
    return httpx.Response(200)


class Recorder:
    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


@pytest_asyncio.fixture
async def make_pipeline(clock):
    clients = []

    def _make(primary_handler, fallback_handler, timeout_ms=1000):
        primary, fallback = mock_client(primary_handler), mock_client(fallback_handler)
        clients.extend([primary, fallback])
        return QuakePipeline(
            primary, fallback,
            primary_url="https://phivolcs.test/",
            fallback_url="https://usgs.test/query",
            timeout_ms=timeout_ms,
            clock=clock,
        )

    yield _make
    for client in clients:
        await client.aclose()


class TestPrimaryPath:
    @pytest.mark.asyncio
    async def test_primary_records_newest_first(self, make_pipeline):
        fallback = Recorder(geojson(USGS_PAYLOAD))
        pipeline = make_pipeline(html(PHIVOLCS_HTML), fallback)

        result = await pipeline.run(10)

        assert result.source == Source.PRIMARY
        assert [q.datetime for q in result.records] == [
            "19 October 2026 - 11:02 AM",
            "18 October 2026 - 09:15 AM",
        ]
        assert fallback.requests == []

    @pytest.mark.asyncio
    async def test_limit_applies(self, make_pipeline):
        pipeline = make_pipeline(html(PHIVOLCS_HTML), geojson(USGS_PAYLOAD))

        result = await pipeline.run(1)

        assert len(result.records) == 1
        assert result.records[0].datetime == "19 October 2026 - 11:02 AM"

    @pytest.mark.asyncio
    async def test_primary_request_uses_clock_for_cache_buster(self, make_pipeline, now):
        primary = Recorder(html(PHIVOLCS_HTML))
        pipeline = make_pipeline(primary, geojson(USGS_PAYLOAD))

        await pipeline.run(10)

        assert primary.requests[0].url.params["t"] == str(int(now.timestamp() * 1000))


class TestFallbackPath:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "primary_handler",
        [html(EMPTY_PAGE_HTML), status(500), status(404), hang],
        ids=["empty-table", "http-500", "http-404", "timeout"],
    )
    async def test_any_primary_failure_falls_back(self, make_pipeline, primary_handler):
        pipeline = make_pipeline(primary_handler, geojson(USGS_PAYLOAD), timeout_ms=50)

        result = await pipeline.run(10)

        assert result.source == Source.FALLBACK
        assert result.records
        assert all(q.source == Source.FALLBACK for q in result.records)

    @pytest.mark.asyncio
    async def test_unreadable_primary_page_falls_back(self, make_pipeline, monkeypatch):
        def broken_extract(html):
            raise ValueError("unexpected markup")

        monkeypatch.setattr("ingest.phivolcs.extract", broken_extract)
        pipeline = make_pipeline(html(PHIVOLCS_HTML), geojson(USGS_PAYLOAD))

        result = await pipeline.run(10)

        assert result.source == Source.FALLBACK

    @pytest.mark.asyncio
    async def test_fallback_window_follows_feed(self, make_pipeline):
        fallback = Recorder(geojson(USGS_PAYLOAD))
        pipeline = make_pipeline(html(EMPTY_PAGE_HTML), fallback)

        await pipeline.run(10, feed="all_week")

        assert fallback.requests[0].url.params["starttime"] == "2026-10-12T05:00:00"

    @pytest.mark.asyncio
    async def test_default_window_is_one_day(self, make_pipeline):
        fallback = Recorder(geojson(USGS_PAYLOAD))
        pipeline = make_pipeline(html(EMPTY_PAGE_HTML), fallback)

        await pipeline.run(10)

        assert fallback.requests[0].url.params["starttime"] == "2026-10-18T05:00:00"

    @pytest.mark.asyncio
    async def test_fallback_records_sorted_and_limited(self, make_pipeline):
        pipeline = make_pipeline(status(503), geojson(USGS_PAYLOAD))

        result = await pipeline.run(1)

        assert [q.datetime for q in result.records] == ["19 October 2026 - 11:30:00 AM"]


class TestTotalFailure:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fallback_handler, expected",
        [
            (status(503), UpstreamStatusError),
            (hang, TransportError),
            (html("<html>not json</html>"), ParseError),
            (geojson({"type": "FeatureCollection", "features": []}), EmptyResultError),
            (geojson({"features": ["x"]}), EmptyResultError),
            (geojson({"features": [{"properties": {"time": 1e20}, "geometry": None}]}), EmptyResultError),
        ],
        ids=["http-503", "timeout", "not-json", "no-features", "non-object-features", "time-out-of-range"],
    )
    async def test_both_sources_fail(self, make_pipeline, fallback_handler, expected):
        pipeline = make_pipeline(status(500), fallback_handler, timeout_ms=50)

        with pytest.raises(AllSourcesFailedError) as exc_info:
            await pipeline.run(10)

        assert isinstance(exc_info.value.primary_error, UpstreamStatusError)
        assert isinstance(exc_info.value.fallback_error, expected)

    @pytest.mark.asyncio
    async def test_empty_primary_and_failing_fallback(self, make_pipeline):
        pipeline = make_pipeline(html(EMPTY_PAGE_HTML), status(502))

        with pytest.raises(AllSourcesFailedError) as exc_info:
            await pipeline.run(10)

        assert isinstance(exc_info.value.primary_error, EmptyResultError)
