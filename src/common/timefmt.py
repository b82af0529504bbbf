"""Clock-time helpers shared by the command interpreter and the header clock."""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("rovi.timefmt")


def to_24h(hour: int | str, minute: int | str | None = None, meridiem: str | None = None) -> str:
    """Convert a spoken clock time to ``HH:MM``.

    Missing minutes default to ``00`` and a missing meridiem to ``am``.
    Hours above 12 are already 24-hour and are kept as given.  Raises
    ``ValueError`` for a time that does not exist: hours outside 1-12 with a
    meridiem, outside 0-23 without one, or minutes outside 0-59.
    """
    h = int(hour)
    m = int(minute) if minute not in (None, "") else 0
    if not 0 <= m <= 59:
        raise ValueError(f"Invalid minutes: {minute}")
    if meridiem:
        if not 1 <= h <= 12:
            raise ValueError(f"Invalid hour for {meridiem}: {hour}")
    elif not 0 <= h <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    mer = (meridiem or "am").lower()
    if h <= 12:
        if mer == "pm" and h != 12:
            h += 12
        elif mer == "am" and h == 12:
            h = 0
    return f"{h:02d}:{m:02d}"


def to_12h(hhmm: str) -> str:
    """``"14:05"`` -> ``"2:05 PM"``."""
    hour_s, _, minute_s = hhmm.partition(":")
    h = int(hour_s)
    suffix = "PM" if h >= 12 else "AM"
    h12 = h % 12 or 12
    return f"{h12}:{int(minute_s or 0):02d} {suffix}"


def format_clock(tz_name: str | None, now: datetime | None = None) -> str:
    """Current time as ``h:MM AM`` in *tz_name*, falling back to local time."""
    current = now or datetime.now().astimezone()
    try:
        if not tz_name:
            raise ZoneInfoNotFoundError("no timezone given")
        local = current.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        logger.debug("Timezone %r unusable, using local time: %s", tz_name, exc)
        local = current if current.tzinfo is None else current.astimezone()
    return to_12h(local.strftime("%H:%M"))
