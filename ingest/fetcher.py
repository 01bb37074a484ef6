# ingest/fetcher.py
import asyncio
import logging
from typing import Mapping, Optional

import httpx

from ingest.errors import TransportError, UpstreamStatusError

logger = logging.getLogger(__name__)

USER_AGENT = "phivolcs-proxy/1.0"


def build_client(verify: bool = True, timeout_ms: int = 7000,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """One client per upstream host, so relaxing TLS for one host never
    leaks into requests made to another."""
    return httpx.AsyncClient(
        verify=verify,
        timeout=httpx.Timeout(timeout_ms / 1000),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        transport=transport,
    )


async def fetch(client: httpx.AsyncClient, url: str, *,
                params: Optional[Mapping[str, str]] = None,
                headers: Optional[Mapping[str, str]] = None,
                timeout_ms: int = 7000) -> httpx.Response:
    """GET `url` with a hard deadline.

    The whole exchange (connect, headers and body) must finish within
    `timeout_ms`; otherwise the request is cancelled and its connection
    released. Raises TransportError when the server was never reached or
    the deadline passed, UpstreamStatusError on a non-2xx answer. Does not
    retry.
    """
    try:
        response = await asyncio.wait_for(
            client.get(url, params=params, headers=headers),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError as e:
        logger.warning("Timed out after %sms fetching %s", timeout_ms, url)
        raise TransportError(f"timed out after {timeout_ms}ms", url=url) from e
    except httpx.RequestError as e:
        logger.warning("Transport error fetching %s: %s", url, e)
        raise TransportError(str(e) or e.__class__.__name__, url=url) from e

    if not response.is_success:
        logger.warning("Upstream %s answered %s", url, response.status_code)
        raise UpstreamStatusError(response.status_code, url=url)
    return response
