"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_in_zone(tz_name: str, now: datetime | None = None) -> date:
    """Calendar date of `now` (default: current instant) in the given IANA zone"""
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()
