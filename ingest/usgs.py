# ingest/usgs.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import httpx
import pandas as pd

from ingest.errors import ParseError
from ingest.fetcher import fetch
from ingest.normalize import MANILA, format_display
from schemas.models import EarthquakeRecord, Source

logger = logging.getLogger(__name__)

USGS_URL = "https://earthquake.usgs.gov/fdsnws/event/1/query"

FEEDS = {
    "all_hour": timedelta(hours=1),
    "all_day": timedelta(days=1),
    "all_week": timedelta(days=7),
}
DEFAULT_FEED = "all_day"


@dataclass(frozen=True)
class BoundingBox:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float


# Philippine area of responsibility, roughly
PH_BBOX = BoundingBox(4, 21, 116, 127)
MIN_MAGNITUDE = 1

# epoch-ms pandas can still hold after shifting to Manila time
MAX_TIME_MS = (pd.Timestamp.max - pd.Timedelta(days=1)).value // 1_000_000


@dataclass(frozen=True)
class FetchWindow:
    start: datetime
    end: datetime

    @classmethod
    def for_feed(cls, feed: str = DEFAULT_FEED, now: Optional[datetime] = None) -> "FetchWindow":
        end = now or datetime.now(timezone.utc)
        delta = FEEDS.get(feed, FEEDS[DEFAULT_FEED])
        return cls(start=end - delta, end=end)


def query_params(window: FetchWindow, bbox: BoundingBox = PH_BBOX,
                 min_magnitude: float = MIN_MAGNITUDE) -> dict:
    start = window.start.astimezone(timezone.utc)
    return {
        "format": "geojson",
        "starttime": start.strftime("%Y-%m-%dT%H:%M:%S"),
        "minlatitude": f"{bbox.min_latitude:g}",
        "maxlatitude": f"{bbox.max_latitude:g}",
        "minlongitude": f"{bbox.min_longitude:g}",
        "maxlongitude": f"{bbox.max_longitude:g}",
        "minmagnitude": f"{min_magnitude:g}",
    }


def _coord(coords: Any, i: int) -> Optional[float]:
    try:
        value = float(coords[i])
    except (TypeError, ValueError, IndexError):
        return None
    return None if pd.isna(value) else value


def _format_depth(km: Optional[float]) -> str:
    if km is None:
        return "Unknown"
    km = float(km)
    return f"{int(km)} km" if km.is_integer() else f"{km!r} km"


def _text(value: Any, default: str) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    value = str(value).strip()
    return value or default


def adapt_features(payload: Any) -> List[EarthquakeRecord]:
    """Map a USGS GeoJSON FeatureCollection to records.

    Times become Manila display strings, coordinates `[lon, lat, depth]` are
    taken as-is, and a missing place reads "Unknown". Features that are not
    objects, or have no time pandas can represent, are dropped. Anything else
    that does not convert raises ParseError.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise ParseError("USGS response is not a GeoJSON FeatureCollection")

    features = [f for f in payload["features"] if isinstance(f, dict)]
    if len(features) != len(payload["features"]):
        logger.debug("Dropped %d USGS features that are not objects",
                     len(payload["features"]) - len(features))
    if not features:
        return []

    try:
        df = pd.json_normalize(features)
        for col in ("properties.time", "properties.mag", "properties.place", "geometry.coordinates"):
            if col not in df.columns:
                df[col] = None

        time_ms = pd.to_numeric(df["properties.time"], errors="coerce")
        time_ms = time_ms.where(time_ms.abs() <= MAX_TIME_MS)
        df["time_utc"] = pd.to_datetime(time_ms, unit="ms", utc=True, errors="coerce")
        dropped = int(df["time_utc"].isna().sum())
        if dropped:
            logger.debug("Dropped %d USGS features without a usable time", dropped)
        df = df.dropna(subset=["time_utc"])
        if df.empty:
            return []

        df["time_local"] = df["time_utc"].dt.tz_convert(MANILA).apply(format_display)
        df["mag"] = pd.to_numeric(df["properties.mag"], errors="coerce").fillna(0.0)
        rows = df.to_dict(orient="records")
    except (TypeError, ValueError, OverflowError) as e:
        raise ParseError(f"USGS features could not be converted: {e}") from e

    quakes = []
    for r in rows:
        coords = r["geometry.coordinates"]
        quakes.append(EarthquakeRecord(
            datetime=r["time_local"],
            latitude=_coord(coords, 1) or 0.0,
            longitude=_coord(coords, 0) or 0.0,
            depth=_format_depth(_coord(coords, 2)),
            magnitude=float(r["mag"]),
            location=_text(r["properties.place"], "Unknown"),
            source=Source.FALLBACK,
        ))
    return quakes


async def fetch_fallback(client: httpx.AsyncClient, window: FetchWindow, *,
                         url: str = USGS_URL, timeout_ms: int = 7000,
                         bbox: BoundingBox = PH_BBOX,
                         min_magnitude: float = MIN_MAGNITUDE) -> List[EarthquakeRecord]:
    params = query_params(window, bbox=bbox, min_magnitude=min_magnitude)
    response = await fetch(client, url, params=params, timeout_ms=timeout_ms)
    try:
        payload = response.json()
    except ValueError as e:
        raise ParseError(f"USGS response is not JSON: {e}") from e
    return adapt_features(payload)
