"""
Cohort retention.

Users are grouped by the period (day, ISO week starting Monday, or calendar
month) of their first-ever event. For each cohort, ``retention[k]`` is the
percentage of members active in the k-th period after the cohort's own, so
``retention[0]`` is always 100.
"""

import calendar
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Set

from app.analytics.common import percentage

logger = logging.getLogger(__name__)

GRANULARITIES = ("day", "week", "month")


def truncate(timestamp: datetime, granularity: str) -> datetime:
    day = timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == "day":
        return day
    if granularity == "week":
        return day - timedelta(days=day.weekday())
    if granularity == "month":
        return day.replace(day=1)
    raise ValueError(f"Unsupported granularity: {granularity}")


def period_offset(cohort_start: datetime, timestamp: datetime, granularity: str) -> int:
    """Number of whole periods between the cohort start and the period containing timestamp."""
    period_start = truncate(timestamp, granularity)
    if granularity == "month":
        return (period_start.year - cohort_start.year) * 12 + period_start.month - cohort_start.month
    days = (period_start - cohort_start).days
    return days // 7 if granularity == "week" else days


def cohort_label(cohort_start: datetime, granularity: str) -> str:
    if granularity == "week":
        iso_year, iso_week, _ = cohort_start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == "month":
        return cohort_start.strftime("%Y-%m")
    return cohort_start.strftime("%Y-%m-%d")


def shift_months(timestamp: datetime, months: int) -> datetime:
    month_index = timestamp.month - 1 + months
    year = timestamp.year + month_index // 12
    month = month_index % 12 + 1
    day = min(timestamp.day, calendar.monthrange(year, month)[1])
    return timestamp.replace(year=year, month=month, day=day)


def first_seen_by_user(events: Iterable) -> Dict[str, datetime]:
    first_seen: Dict[str, datetime] = {}
    for event in events:
        current = first_seen.get(event.user_id)
        if current is None or event.timestamp < current:
            first_seen[event.user_id] = event.timestamp
    return first_seen


def retention_from_counts(cohort_size: int, active_counts: Sequence[int]) -> List[float]:
    """Converts active-member counts per period offset into percentages of the cohort."""
    return [percentage(count, cohort_size) for count in active_counts]


def analyze_retention(events: Iterable, granularity: str = "week", periods: int = 12) -> dict:
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unsupported granularity: {granularity}")
    if periods < 1:
        raise ValueError("periods must be at least 1")

    events = list(events)
    first_seen = first_seen_by_user(events)

    cohort_of: Dict[str, datetime] = {
        user_id: truncate(timestamp, granularity) for user_id, timestamp in first_seen.items()
    }
    members: Dict[datetime, Set[str]] = defaultdict(set)
    for user_id, cohort_start in cohort_of.items():
        members[cohort_start].add(user_id)

    # (cohort_start, offset) -> active users
    active: Dict[tuple, Set[str]] = defaultdict(set)
    for event in events:
        cohort_start = cohort_of[event.user_id]
        offset = period_offset(cohort_start, event.timestamp, granularity)
        if 0 <= offset < periods:
            active[(cohort_start, offset)].add(event.user_id)

    cohorts = []
    for cohort_start in sorted(members):
        size = len(members[cohort_start])
        counts = [len(active[(cohort_start, offset)]) for offset in range(periods)]
        cohorts.append(
            {
                "cohort": cohort_label(cohort_start, granularity),
                "cohort_start": cohort_start,
                "cohort_size": size,
                "retention": retention_from_counts(size, counts),
            }
        )

    logger.debug("Retention by %s: %d cohorts", granularity, len(cohorts))
    return {"granularity": granularity, "periods": periods, "cohorts": cohorts}


def day_n_retention(events: Iterable, days: Sequence[int], as_of: datetime) -> List[dict]:
    """
    For each N, among users first seen at least N days before ``as_of``, the
    share that were active during day N after their first event.
    """
    events = list(events)
    first_seen = first_seen_by_user(events)
    timestamps_by_user = defaultdict(list)
    for event in events:
        timestamps_by_user[event.user_id].append(event.timestamp)

    results = []
    for day in days:
        eligible = [
            user_id for user_id, first in first_seen.items()
            if first <= as_of - timedelta(days=day)
        ]
        retained = 0
        for user_id in eligible:
            window_start = first_seen[user_id] + timedelta(days=day)
            window_end = window_start + timedelta(days=1)
            if any(window_start <= ts < window_end for ts in timestamps_by_user[user_id]):
                retained += 1
        results.append(
            {
                "day": day,
                "total_users": len(eligible),
                "retained_users": retained,
                "retention_rate": percentage(retained, len(eligible)),
            }
        )
    return results


def churn_rate(events: Iterable, period: str, as_of: datetime) -> dict:
    """Share of users active in the previous period who were not active in the current one."""
    if period == "week":
        current_start = as_of - timedelta(days=7)
        previous_start = current_start - timedelta(days=7)
    elif period == "month":
        current_start = shift_months(as_of, -1)
        previous_start = shift_months(current_start, -1)
    else:
        raise ValueError(f"Unsupported churn period: {period}")

    previous_active: Set[str] = set()
    current_active: Set[str] = set()
    for event in events:
        if previous_start <= event.timestamp < current_start:
            previous_active.add(event.user_id)
        elif current_start <= event.timestamp <= as_of:
            current_active.add(event.user_id)

    churned = previous_active - current_active
    return {
        "period": period,
        "previous_active": len(previous_active),
        "current_active": len(current_active),
        "churned_users": len(churned),
        "churn_rate": percentage(len(churned), len(previous_active)),
    }
