# ingest/pipeline.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

import httpx
from prometheus_client import Counter

from ingest.errors import AllSourcesFailedError, EmptyResultError, QuakeSourceError
from ingest.normalize import normalize
from ingest.phivolcs import PHIVOLCS_URL, fetch_primary
from ingest.usgs import DEFAULT_FEED, USGS_URL, FetchWindow, fetch_fallback
from schemas.models import EarthquakeRecord, Source

logger = logging.getLogger(__name__)

PIPELINE_OUTCOMES = Counter(
    "quake_pipeline_outcomes_total",
    "Pipeline runs by the source that answered",
    ["source"],
)


@dataclass(frozen=True)
class PipelineResult:
    records: List[EarthquakeRecord]
    source: Source


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuakePipeline:
    """PHIVOLCS first, USGS if that fails, error if both do.

    Holds no per-request state; one instance serves every request. The two
    clients are owned by the caller.
    """

    def __init__(self, primary_client: httpx.AsyncClient, fallback_client: httpx.AsyncClient, *,
                 primary_url: str = PHIVOLCS_URL, fallback_url: str = USGS_URL,
                 timeout_ms: int = 7000, clock: Callable[[], datetime] = _utcnow):
        self.primary_client = primary_client
        self.fallback_client = fallback_client
        self.primary_url = primary_url
        self.fallback_url = fallback_url
        self.timeout_ms = timeout_ms
        self.clock = clock

    async def _primary(self) -> List[EarthquakeRecord]:
        quakes = await fetch_primary(
            self.primary_client,
            url=self.primary_url,
            timeout_ms=self.timeout_ms,
            now=self.clock().timestamp(),
        )
        # an unreachable table looks exactly like a quiet day, so empty counts as failure
        if not quakes:
            raise EmptyResultError("No earthquake data found on the PHIVOLCS page")
        return quakes

    async def _fallback(self, feed: str) -> List[EarthquakeRecord]:
        window = FetchWindow.for_feed(feed, now=self.clock())
        logger.info("Fetching USGS fallback data (%s) since %s", feed, window.start.isoformat())
        quakes = await fetch_fallback(
            self.fallback_client, window,
            url=self.fallback_url,
            timeout_ms=self.timeout_ms,
        )
        if not quakes:
            raise EmptyResultError(f"No USGS events in the {feed} window")
        return quakes

    async def run(self, limit: int, feed: Optional[str] = None) -> PipelineResult:
        feed = feed or DEFAULT_FEED
        logger.info("Fetching PHIVOLCS data (limit=%d)", limit)
        try:
            quakes = await self._primary()
        except QuakeSourceError as e:
            logger.warning("PHIVOLCS fetch error: %s", e)
            primary_error = e
        else:
            PIPELINE_OUTCOMES.labels(source=Source.PRIMARY.value).inc()
            return PipelineResult(normalize(quakes, limit), Source.PRIMARY)

        try:
            quakes = await self._fallback(feed)
        except QuakeSourceError as fallback_error:
            logger.error("Both PHIVOLCS and USGS failed: %s", fallback_error)
            PIPELINE_OUTCOMES.labels(source="error").inc()
            raise AllSourcesFailedError(primary_error, fallback_error) from fallback_error

        PIPELINE_OUTCOMES.labels(source=Source.FALLBACK.value).inc()
        return PipelineResult(normalize(quakes, limit), Source.FALLBACK)
