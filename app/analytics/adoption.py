"""
Feature adoption and stickiness.

DAU, WAU and MAU count the distinct users firing the feature event on the day,
in the trailing 7 days, and in the trailing 30 days. Adoption on a day is the
share of users known by then who have fired the event at least once.
"""

import logging
import math
from bisect import bisect_right
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Set

from app.analytics.common import in_window, median_of, minutes_between, percentage, round_to

logger = logging.getLogger(__name__)

WAU_DAYS = 7
MAU_DAYS = 30

USAGE_BUCKETS = (
    ("1", 1, 1),
    ("2-5", 2, 5),
    ("6-10", 6, 10),
    ("11-20", 11, 20),
    ("21-50", 21, 50),
    ("51+", 51, math.inf),
)


def stickiness(dau: int, mau: int) -> float:
    return percentage(dau, mau)


def _active_in(day_users: Mapping[date, Set[str]], day: date, span: int) -> int:
    users: Set[str] = set()
    for offset in range(span):
        users |= day_users.get(day - timedelta(days=offset), set())
    return len(users)


def feature_adoption(
    feature_events: Iterable,
    user_created_at: Iterable[datetime],
    event_name: str,
    start: datetime,
    end: datetime,
) -> dict:
    """
    Daily adoption series over ``[start, end]``.

    ``feature_events`` should include the feature's history before ``start``
    so trailing windows and cumulative adoption are complete; events after
    ``end`` are ignored.
    """
    day_users: Dict[date, Set[str]] = defaultdict(set)
    first_use: Dict[str, date] = {}
    for event in feature_events:
        if event.event_name != event_name or event.timestamp > end:
            continue
        day = event.timestamp.date()
        day_users[day].add(event.user_id)
        if event.user_id not in first_use or day < first_use[event.user_id]:
            first_use[event.user_id] = day

    adoption_days = sorted(first_use.values())
    signup_days = sorted(created.date() for created in user_created_at)

    series = []
    day = start.date()
    while day <= end.date():
        adopted = bisect_right(adoption_days, day)
        known = bisect_right(signup_days, day)
        series.append(
            {
                "date": day,
                "dau": len(day_users.get(day, ())),
                "wau": _active_in(day_users, day, WAU_DAYS),
                "mau": _active_in(day_users, day, MAU_DAYS),
                "adopted_users": adopted,
                "total_users": known,
                "adoption_rate": percentage(adopted, known),
            }
        )
        day += timedelta(days=1)

    latest = None
    if series:
        last = series[-1]
        latest = {
            "date": last["date"],
            "dau": last["dau"],
            "mau": last["mau"],
            "stickiness": stickiness(last["dau"], last["mau"]),
        }

    logger.debug("Adoption for %s over %d days", event_name, len(series))
    return {"feature_event": event_name, "series": series, "stickiness": latest}


def _usage_by_user(feature_events: Iterable, start, end) -> Dict[str, List[datetime]]:
    usage = defaultdict(list)
    for event in feature_events:
        if in_window(event.timestamp, start, end):
            usage[event.user_id].append(event.timestamp)
    return usage


def power_users(feature_events: Iterable, start=None, end=None, min_usage: int = 10, limit: int = 100) -> List[dict]:
    users = []
    for user_id, timestamps in _usage_by_user(feature_events, start, end).items():
        if len(timestamps) < min_usage:
            continue
        first, last = min(timestamps), max(timestamps)
        users.append(
            {
                "user_id": user_id,
                "usage_count": len(timestamps),
                "first_use": first,
                "last_use": last,
                "days_active": math.ceil((last - first).total_seconds() / 86400),
            }
        )
    users.sort(key=lambda u: (-u["usage_count"], u["user_id"]))
    return users[:limit]


def usage_distribution(feature_events: Iterable, event_name: str, start=None, end=None) -> dict:
    counts = [len(t) for t in _usage_by_user(feature_events, start, end).values()]
    total = len(counts)

    distribution = []
    for label, low, high in USAGE_BUCKETS:
        in_bucket = sum(1 for count in counts if low <= count <= high)
        distribution.append(
            {"usage_range": label, "user_count": in_bucket, "percentage": percentage(in_bucket, total)}
        )
    return {"feature_event": event_name, "total_users": total, "distribution": distribution}


def time_to_adoption(
    first_use: Mapping[str, datetime],
    signed_up: Mapping[str, datetime],
    event_name: str,
) -> dict:
    """Minutes between each user's signup and their first use of the feature."""
    minutes = [
        minutes_between(signed_up[user_id], used_at)
        for user_id, used_at in first_use.items()
        if user_id in signed_up
    ]
    if not minutes:
        return {"feature_event": event_name, "sample_size": 0, "avg_minutes": 0.0, "median_minutes": 0.0}

    return {
        "feature_event": event_name,
        "sample_size": len(minutes),
        "avg_minutes": round_to(sum(minutes) / len(minutes)),
        "median_minutes": round_to(median_of(minutes)),
    }
