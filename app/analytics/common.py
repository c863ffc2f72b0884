"""
Shared helpers for the analytics calculations.

The analytics functions accept any objects exposing ``user_id``,
``event_name`` and ``timestamp`` attributes (and ``session_id`` where
sessions matter), so ORM rows from the repositories can be passed in
directly. ``EventRecord`` is the plain equivalent used by tests and callers
that build events by hand.
"""

from datetime import datetime
from statistics import median
from typing import Any, Dict, Iterable, List, NamedTuple, Optional


class EventRecord(NamedTuple):
    user_id: str
    event_name: str
    timestamp: datetime
    session_id: Optional[str] = None
    properties: Optional[Dict[str, Any]] = None
    page_url: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None


def round_to(value: float, decimals: int = 2) -> float:
    return round(value, decimals)


def percentage(part: float, whole: float) -> float:
    """part / whole * 100 rounded to 2 decimals; 0 when whole is 0."""
    if not whole:
        return 0.0
    return round_to(part / whole * 100)


def median_of(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return median(values)


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def in_window(timestamp: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp > end:
        return False
    return True


def sort_by_time(events: Iterable) -> List:
    return sorted(events, key=lambda e: e.timestamp)
