import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from api.config import get_settings
from api.routers import quakes
from ingest.errors import AllSourcesFailedError
from ingest.fetcher import build_client
from ingest.pipeline import QuakePipeline
from schemas.models import ErrorOut

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one client per upstream: only PHIVOLCS gets the relaxed TLS check
    primary_client = build_client(verify=settings.phivolcs_verify_tls, timeout_ms=settings.fetch_timeout_ms)
    fallback_client = build_client(verify=True, timeout_ms=settings.fetch_timeout_ms)
    app.state.settings = settings
    app.state.pipeline = QuakePipeline(
        primary_client,
        fallback_client,
        primary_url=settings.phivolcs_url,
        fallback_url=settings.usgs_url,
        timeout_ms=settings.fetch_timeout_ms,
    )
    logger.info("Server ready, CORS origins: %s", ", ".join(settings.cors_origins))
    try:
        yield
    finally:
        await primary_client.aclose()
        await fallback_client.aclose()


app = FastAPI(
    title="PHIVOLCS Earthquakes API",
    version="0.1",
    description="Latest Philippine earthquakes scraped from PHIVOLCS, with USGS as fallback.",
    lifespan=lifespan,
)


# =========================
# PROMETHEUS METRICS
# =========================

REQUEST_COUNT = Counter(
    "quake_proxy_http_requests_total",
    "HTTP requests by route template",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "quake_proxy_http_request_duration_seconds",
    "Request latency by route template, in seconds",
    ["method", "path"],
)


def route_label(request: Request) -> str:
    """Route template of the matched endpoint, so labels stay bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # the router fills scope["route"] while handling the request
        path = route_label(request)
        REQUEST_COUNT.labels(method=request.method, path=path, status=response.status_code).inc()
        REQUEST_LATENCY.labels(method=request.method, path=path).observe(elapsed)
        return response


NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Stale seismic data is worse than none: nothing we send is cacheable."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(NO_STORE_HEADERS)
        return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Cache-Control"],
)
app.add_middleware(MetricsMiddleware)
# added last so it wraps everything, CORS preflight answers included
app.add_middleware(NoCacheMiddleware)


@app.exception_handler(AllSourcesFailedError)
async def all_sources_failed(request: Request, exc: AllSourcesFailedError):
    return JSONResponse(
        status_code=500,
        content=ErrorOut(error="Unable to fetch earthquake data").model_dump(),
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


app.include_router(quakes.router)


def run():
    import uvicorn
    uvicorn.run("api.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
