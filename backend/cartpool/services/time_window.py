"""
services/time_window.py — Shopping time window parsing.

Clients send party times without a year, as "MM-DD HH:MM". The year comes
from an injected clock so parsing is deterministic under test:

    parse_party_time("03-14 18:30", clock=lambda: datetime(2026, 1, 1))
    → datetime(2026, 3, 14, 18, 30)

Pure Python. No Flask, no DB.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

Clock = Callable[[], datetime]

INPUT_FORMAT = "%Y-%m-%d %H:%M"
DISPLAY_FORMAT = "%m-%d %H:%M"


def local_now() -> datetime:
    """Default clock: local wall-clock time."""
    return datetime.now()


def parse_party_time(raw: str, clock: Clock = local_now) -> datetime:
    """
    Parses "MM-DD HH:MM" anchored to the clock's current year.

    Raises ValueError if `raw` is malformed or names a date that does not
    exist in that year (e.g. "02-29" outside a leap year). The error is not
    translated into an AppError; the schema layer rejects malformed input
    before a route ever calls the service.
    """
    year = clock().year
    return datetime.strptime(f"{year}-{raw.strip()}", INPUT_FORMAT)


def parse_time_window(
        raw_start: str,
        raw_end: str,
        clock: Clock = local_now,
) -> tuple[datetime, datetime]:
    """Parses both ends with a single clock reading."""
    now = clock()
    return (
        parse_party_time(raw_start, clock=lambda: now),
        parse_party_time(raw_end, clock=lambda: now),
    )


def is_valid_window(start: datetime, end: datetime) -> bool:
    """A window is valid only if it starts strictly before it ends."""
    return start < end


def format_party_time(value: datetime) -> str:
    return value.strftime(DISPLAY_FORMAT)
