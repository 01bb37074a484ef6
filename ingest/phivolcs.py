# ingest/phivolcs.py
"""Scraper for the PHIVOLCS "latest earthquake information" page.

The page is a plain HTML table whose layout is not versioned, so everything
here is tolerant: rows that do not look like data rows are skipped, and
numbers that cannot be read become 0.0. `extract` never raises on a
well-formed string; deciding what an empty result means is left to the
caller.
"""
import logging
import math
import re
import time
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from ingest.errors import ParseError
from ingest.fetcher import fetch
from schemas.models import EarthquakeRecord, Source

logger = logging.getLogger(__name__)

PHIVOLCS_URL = "https://earthquake.phivolcs.dost.gov.ph/"
N_CELLS = 6

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

_TZ_NOISE = re.compile(r"\s*\(?\b(?:PST|PHT|UTC|GMT)\b\)?\s*$")
_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_SPACES = re.compile(r"\s+")


def clean_text(text: str) -> str:
    return _SPACES.sub(" ", text or "").strip()


def strip_tz_noise(text: str) -> str:
    return _TZ_NOISE.sub("", text).strip()


def parse_float(text: str) -> float:
    """Leading number of `text`, or 0.0 when there is none.

    Lossy by design: "12.5°N" reads as 12.5, "-" or "" read as 0.0. NaN and
    infinities are also reported as 0.0 so they never reach the JSON.
    """
    match = _NUMBER.match(clean_text(text))
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def _body_rows(table):
    rows = [tr for tr in table.find_all("tr") if tr.find_parent("table") is table]
    if any(thead.find_parent("table") is table for thead in table.find_all("thead")):
        return [tr for tr in rows if tr.find_parent("thead") is None]
    # no header marker: the first row is the header
    return rows[1:]


def _row_to_record(tr) -> Optional[EarthquakeRecord]:
    cells = [clean_text(td.get_text(" ")) for td in tr.find_all("td", recursive=False)]
    if len(cells) < N_CELLS:
        return None
    when, lat, lon, depth, mag, location = cells[:N_CELLS]
    return EarthquakeRecord(
        datetime=strip_tz_noise(when),
        latitude=parse_float(lat),
        longitude=parse_float(lon),
        depth=depth,
        magnitude=parse_float(mag),
        location=location or "Unknown",
        source=Source.PRIMARY,
    )


def extract(html: str) -> List[EarthquakeRecord]:
    soup = BeautifulSoup(html or "", "html.parser")
    quakes = []
    skipped = 0
    for table in soup.find_all("table"):
        for tr in _body_rows(table):
            record = _row_to_record(tr)
            if record is None:
                skipped += 1
                continue
            quakes.append(record)
    if skipped:
        logger.debug("Skipped %d malformed PHIVOLCS rows", skipped)
    return quakes


async def fetch_primary(client: httpx.AsyncClient, *, url: str = PHIVOLCS_URL,
                        timeout_ms: int = 7000, now: Optional[float] = None) -> List[EarthquakeRecord]:
    # query param to get past intermediary caches
    ts = int((time.time() if now is None else now) * 1000)
    response = await fetch(
        client, url,
        params={"t": str(ts)},
        headers=NO_CACHE_HEADERS,
        timeout_ms=timeout_ms,
    )
    try:
        return extract(response.text)
    except (ValueError, LookupError) as e:
        # undecodable body or a charset the codec registry does not know
        raise ParseError(f"PHIVOLCS page could not be read: {e}") from e
