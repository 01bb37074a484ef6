# ingest/normalize.py
import re
from datetime import datetime
from typing import Iterable, List, Optional

import pytz

from schemas.models import EarthquakeRecord

MANILA = pytz.timezone("Asia/Manila")

# English names regardless of LC_TIME; strftime("%B") and "%p" follow the locale
MONTHS = ("January", "February", "March", "April", "May", "June", "July",
          "August", "September", "October", "November", "December")

# PHIVOLCS table layout, e.g. "19 October 2026 - 01:23 PM"; seconds optional
_DISPLAY = re.compile(
    r"^(?P<day>\d{1,2}) (?P<month>[A-Za-z]+) (?P<year>\d{4}) - "
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))? (?P<ampm>[AaPp][Mm])$"
)
# en-PH locale string, e.g. "10/19/2026, 1:23:45 PM"
_LOCALE = re.compile(
    r"^(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4}),? "
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))? (?P<ampm>[AaPp][Mm])$"
)
_ISO_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")


def format_display(when) -> str:
    """Render a datetime in the PHIVOLCS layout, with seconds."""
    hour = when.hour % 12 or 12
    ampm = "AM" if when.hour < 12 else "PM"
    return (f"{when.day:02d} {MONTHS[when.month - 1]} {when.year} - "
            f"{hour:02d}:{when.minute:02d}:{when.second:02d} {ampm}")


def _month_number(name: str) -> Optional[int]:
    name = name.lower()
    for i, month in enumerate(MONTHS, start=1):
        if month.lower() == name or month[:3].lower() == name:
            return i
    return None


def _from_match(m, month: Optional[int]) -> Optional[datetime]:
    hour = int(m.group("hour"))
    if month is None or not 1 <= hour <= 12:
        return None
    hour = hour % 12 + (12 if m.group("ampm").upper() == "PM" else 0)
    try:
        return datetime(int(m.group("year")), month, int(m.group("day")),
                        hour, int(m.group("minute")), int(m.group("second") or 0))
    except ValueError:
        return None


def parse_event_time(text: str) -> Optional[datetime]:
    """Read an event time as naive Manila local time, or None."""
    if not text:
        return None
    text = re.sub(r"\s+", " ", text).strip()

    m = _DISPLAY.match(text)
    if m:
        return _from_match(m, _month_number(m.group("month")))
    m = _LOCALE.match(text)
    if m:
        return _from_match(m, int(m.group("month")))

    for fmt in _ISO_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(MANILA).replace(tzinfo=None)
    return parsed


def normalize(records: Iterable[EarthquakeRecord], limit: int) -> List[EarthquakeRecord]:
    """Newest first, then the first `limit`.

    The sort is stable, so records with equal times keep their input order.
    Records whose time cannot be read go after every dated record.
    """
    if limit <= 0:
        return []

    def key(record: EarthquakeRecord):
        parsed = parse_event_time(record.datetime)
        return (parsed is not None, parsed or datetime.min)

    return sorted(records, key=key, reverse=True)[:limit]
