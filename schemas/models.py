# schemas/models.py
from enum import Enum

from pydantic import BaseModel, ConfigDict


class Source(str, Enum):
    PRIMARY = "PHIVOLCS"
    FALLBACK = "USGS"


class EarthquakeRecord(BaseModel):
    """One earthquake as served by the API.

    Numeric fields are lossy on purpose: a value the upstream gives us that
    cannot be read as a float is reported as 0.0, never as an error or NaN.
    """

    model_config = ConfigDict(frozen=True)

    datetime: str
    latitude: float = 0.0
    longitude: float = 0.0
    depth: str = ""
    magnitude: float = 0.0
    location: str = "Unknown"
    source: Source


class ErrorOut(BaseModel):
    error: str
