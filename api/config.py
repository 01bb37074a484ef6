# api/config.py
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv
load_dotenv()

DEFAULT_CORS_ORIGINS = "https://projectearthquake-seismologyph.netlify.app,http://localhost:3000"


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))
    phivolcs_url: str = "https://earthquake.phivolcs.dost.gov.ph/"
    # PHIVOLCS serves an incomplete certificate chain
    phivolcs_verify_tls: bool = False
    usgs_url: str = "https://earthquake.usgs.gov/fdsnws/event/1/query"
    fetch_timeout_ms: int = 7000
    latest_limit: int = 10
    all_limit: int = 50
    log_level: str = "INFO"


def get_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return Settings(
        port=int(os.getenv("PORT", "3000")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        phivolcs_url=os.getenv("PHIVOLCS_URL", Settings.phivolcs_url),
        phivolcs_verify_tls=_flag(os.getenv("PHIVOLCS_VERIFY_TLS", "0")),
        usgs_url=os.getenv("USGS_URL", Settings.usgs_url),
        fetch_timeout_ms=int(os.getenv("FETCH_TIMEOUT_MS", "7000")),
        latest_limit=int(os.getenv("LATEST_LIMIT", "10")),
        all_limit=int(os.getenv("ALL_LIMIT", "50")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
