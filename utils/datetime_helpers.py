"""Timezone-aware date/time helpers for the reservation service."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Asia/Manila')
    return ZoneInfo(tz_name)


def get_now() -> datetime:
    """Get current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def to_local(now: datetime) -> datetime:
    """
    Express a datetime in the configured timezone.

    Naive datetimes are taken to already be local wall-clock time.
    """
    if now.tzinfo is None:
        return now.replace(tzinfo=get_timezone())
    return now.astimezone(get_timezone())


def format_timestamp(now: datetime) -> str:
    """
    Format a datetime the way SQLite CURRENT_TIMESTAMP stores it (UTC).

    Naive datetimes are taken to be local wall-clock time.
    """
    return to_local(now).astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')
