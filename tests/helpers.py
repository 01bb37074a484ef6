"""Canned upstream bodies and mock-transport clients."""

from datetime import datetime, timezone

import httpx

from ingest.fetcher import build_client

NOW = datetime(2026, 10, 19, 5, 0, tzinfo=timezone.utc)

PHIVOLCS_HTML = """
<html><body>
<table class="MsoNormalTable">
  <tbody>
    <tr><th>Date - Time (Philippine Time)</th><th>Latitude (ºN)</th><th>Longitude (ºE)</th>
        <th>Depth (km)</th><th>Mag</th><th>Location</th></tr>
    <tr><td><a href="#">18 October 2026 - 09:15 AM</a></td><td>12.34</td><td>125.67</td>
        <td>010</td><td>2.3</td><td>012 km N 45° E of Gen. Luna (Surigao Del Norte)</td></tr>
    <tr><td>19 October 2026 - 11:02 AM PST</td><td> 6.10 </td><td>126.20</td>
        <td>025</td><td></td><td>  020 km S 10° W of Davao City  </td></tr>
    <tr><td>bad row</td><td>1</td><td>2</td></tr>
  </tbody>
</table>
</body></html>
"""

EMPTY_PAGE_HTML = "<html><body><p>Service temporarily unavailable</p></body></html>"


def usgs_feature(time_ms, lon, lat, depth, mag=4.5, place="10 km SE of Sample, Philippines"):
    return {
        "type": "Feature",
        "properties": {"time": time_ms, "mag": mag, "place": place},
        "geometry": {"type": "Point", "coordinates": [lon, lat, depth]},
    }


# 2026-10-19 03:30 UTC and 2026-10-18 22:00 UTC
USGS_PAYLOAD = {
    "type": "FeatureCollection",
    "features": [
        usgs_feature(1792380600000, 125.1, 7.2, 35.5, mag=4.8),
        usgs_feature(1792360800000, 121.9, 14.6, 10, mag=None, place=None),
    ],
}


def mock_client(handler) -> httpx.AsyncClient:
    return build_client(transport=httpx.MockTransport(handler))
