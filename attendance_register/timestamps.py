"""Parsing of the locale-ambiguous timestamps found in Zoom exports.

Italian exports write ``08/07/2025 09:02:37 AM`` (day/month) while some
accounts export month/day. The order is decided per value:

* first component > 12           -> already day/month
* second component > 12          -> month/day, swapped
* both <= 12 (ambiguous)         -> day/month, the deployment locale

Parsing never aborts an ingestion: a value that cannot be read degrades to the
current instant and is logged.
"""

import logging
import re
from typing import Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

_EXCEL_WRAP = re.compile(r'^="?|"$')


def _clean(text) -> str:
    if text is None:
        return ""
    try:
        if pd.isna(text):
            return ""
    except (TypeError, ValueError):
        pass
    s = str(text).strip()
    s = _EXCEL_WRAP.sub("", s)
    return s.replace('"', "").strip()


def disambiguate_date(p1: int, p2: int) -> Tuple[int, int]:
    """Return ``(day, month)`` for the first two date components."""
    if p1 > 12 and p2 <= 12:
        return p1, p2
    if p2 > 12 and p1 <= 12:
        return p2, p1
    return p1, p2


def _to_24h(hour: int, ampm: str) -> int:
    if ampm == "PM" and hour != 12:
        return hour + 12
    if ampm == "AM" and hour == 12:
        return 0
    return hour


def _parse(text: str) -> pd.Timestamp:
    parts = text.split()
    date_part = parts[0]
    time_part = parts[1] if len(parts) > 1 else "00:00:00"
    ampm = parts[2].upper() if len(parts) > 2 else ""
    # "09:02:37PM" glued suffix
    m = re.match(r"^(.*?)(AM|PM)$", time_part, flags=re.I)
    if m and not ampm:
        time_part, ampm = m.group(1), m.group(2).upper()

    p1, p2, p3 = (int(v) for v in date_part.split("/"))
    day, month = disambiguate_date(p1, p2)

    hms = (time_part.split(":") + ["0", "0"])[:3]
    hour = int(hms[0] or 0)
    minute = int(hms[1] or 0)
    second = int(hms[2] or 0)
    return pd.Timestamp(year=p3, month=month, day=day,
                        hour=_to_24h(hour, ampm), minute=minute, second=second)


def try_parse_zoom_datetime(text) -> Optional[pd.Timestamp]:
    """Parse a Zoom timestamp, returning None when it cannot be read."""
    s = _clean(text)
    if not s:
        return None
    try:
        return _parse(s)
    except (ValueError, TypeError, IndexError) as e:
        logger.debug(f"Unparsable timestamp {text!r}: {e}")
        return None


def parse_zoom_datetime(text) -> pd.Timestamp:
    """Parse a Zoom timestamp; unreadable input degrades to now."""
    ts = try_parse_zoom_datetime(text)
    if ts is None:
        logger.warning(f"Could not parse timestamp {text!r}, using current time")
        return pd.Timestamp.now()
    return ts
