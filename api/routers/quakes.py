from typing import List

from fastapi import APIRouter, Depends, Query, Request, Response

from api.config import Settings
from ingest.pipeline import QuakePipeline
from ingest.usgs import DEFAULT_FEED
from schemas.models import EarthquakeRecord, ErrorOut

router = APIRouter(prefix="/api", tags=["quakes"])

FEED_PATTERN = "^(all_hour|all_day|all_week)$"
ERROR_RESPONSES = {500: {"model": ErrorOut, "description": "Both PHIVOLCS and USGS failed"}}


def get_pipeline(request: Request) -> QuakePipeline:
    return request.app.state.pipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def _quakes(pipeline: QuakePipeline, response: Response, limit: int, feed: str):
    result = await pipeline.run(limit, feed=feed)
    response.headers["X-Data-Source"] = result.source.value
    return result.records


@router.get("/quakes", response_model=List[EarthquakeRecord], responses=ERROR_RESPONSES)
@router.get("/phivolcs", response_model=List[EarthquakeRecord], include_in_schema=False)
async def latest(
    response: Response,
    feed: str = Query(DEFAULT_FEED, pattern=FEED_PATTERN),
    pipeline: QuakePipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
):
    """Newest earthquakes (10 by default)."""
    return await _quakes(pipeline, response, settings.latest_limit, feed)


@router.get("/quakes/all", response_model=List[EarthquakeRecord], responses=ERROR_RESPONSES)
@router.get("/phivolcs/all", response_model=List[EarthquakeRecord], include_in_schema=False)
async def all_quakes(
    response: Response,
    feed: str = Query(DEFAULT_FEED, pattern=FEED_PATTERN),
    pipeline: QuakePipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
):
    """Same cascade as /quakes with a larger limit (50 by default)."""
    return await _quakes(pipeline, response, settings.all_limit, feed)
