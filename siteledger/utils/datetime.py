"""Notification timestamps in the application timezone and their stored form."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from siteledger.config import get_settings

logger = logging.getLogger(__name__)

FALLBACK_TIMEZONE = "Asia/Kolkata"


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the zone named by ``APP_TIMEZONE``, or the fallback zone."""

    name = (get_settings().app_timezone or "").strip()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown APP_TIMEZONE %r; using %s", name, FALLBACK_TIMEZONE)
        return ZoneInfo(FALLBACK_TIMEZONE)


def now_in_app_timezone() -> datetime:
    return datetime.now(tz=get_app_timezone())


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Read a timestamp back: naive values are app-zone wall clock time."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=get_app_timezone())
    return value.astimezone(get_app_timezone())


def to_storage_datetime(value: datetime) -> datetime:
    """Return the naive app-zone wall clock time kept in the database."""

    if value.tzinfo is None:
        return value
    return value.astimezone(get_app_timezone()).replace(tzinfo=None)
