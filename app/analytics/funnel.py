"""
Funnel analysis.

A user reaches step ``i`` when they fired step ``i``'s event strictly after
the moment they reached step ``i - 1``; other events may occur in between.
Matching is greedy on the earliest qualifying event, which maximises the
number of steps each user reaches.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from app.analytics.common import in_window, median_of, minutes_between, percentage, round_to, sort_by_time

logger = logging.getLogger(__name__)


def funnel_progress(
    events: Iterable,
    steps: Sequence[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, List[datetime]]:
    """
    Maps each user who reached step 1 to the timestamps at which they
    completed each step, in order. The list length is the number of steps reached.
    """
    step_names = set(steps)
    per_user = defaultdict(list)
    for event in events:
        if event.event_name in step_names and in_window(event.timestamp, start, end):
            per_user[event.user_id].append(event)

    progress: Dict[str, List[datetime]] = {}
    for user_id, user_events in per_user.items():
        reached: List[datetime] = []
        for event in sort_by_time(user_events):
            if len(reached) == len(steps):
                break
            if event.event_name != steps[len(reached)]:
                continue
            if reached and event.timestamp <= reached[-1]:
                continue
            reached.append(event.timestamp)
        if reached:
            progress[user_id] = reached

    return progress


def funnel_from_counts(steps: Sequence[str], counts: Sequence[int]) -> dict:
    """Builds per-step conversion figures from the user count at each step."""
    first = counts[0] if counts else 0
    results = []
    for index, (step, count) in enumerate(zip(steps, counts)):
        previous = counts[index - 1] if index else count
        drop_off = previous - count if index else 0
        results.append(
            {
                "step": index + 1,
                "event_name": step,
                "user_count": count,
                "conversion_rate": percentage(count, first),
                "step_conversion_rate": percentage(count, previous),
                "drop_off_count": drop_off,
                "drop_off_rate": percentage(drop_off, previous) if index else 0.0,
            }
        )

    return {
        "steps": results,
        "overall_conversion": percentage(counts[-1], first) if counts else 0.0,
    }


def analyze_funnel(
    events: Iterable,
    steps: Sequence[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    progress = funnel_progress(events, steps, start, end)
    counts = [
        sum(1 for reached in progress.values() if len(reached) > index)
        for index in range(len(steps))
    ]
    logger.debug("Funnel %s counts: %s", list(steps), counts)

    result = funnel_from_counts(steps, counts)
    result["start_date"] = start
    result["end_date"] = end
    return result


def step_timings(
    events: Iterable,
    steps: Sequence[str],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[dict]:
    """Average and median minutes between consecutive steps, for users who made each transition."""
    progress = funnel_progress(events, steps, start, end)

    timings = []
    for index in range(len(steps) - 1):
        durations = [
            minutes_between(reached[index], reached[index + 1])
            for reached in progress.values()
            if len(reached) > index + 1
        ]
        if not durations:
            continue
        timings.append(
            {
                "from_step": steps[index],
                "to_step": steps[index + 1],
                "avg_minutes": round_to(sum(durations) / len(durations)),
                "median_minutes": round_to(median_of(durations)),
                "sample_size": len(durations),
            }
        )
    return timings


def funnel_breakdown(
    events: Iterable,
    steps: Sequence[str],
    breakdown_property: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """Runs the funnel separately for every value of an event attribute (e.g. device_type)."""
    segments = defaultdict(list)
    for event in events:
        value = getattr(event, breakdown_property, None)
        if value is not None:
            segments[str(value)].append(event)

    results = []
    for value in sorted(segments):
        funnel = analyze_funnel(segments[value], steps, start, end)
        results.append(
            {
                "value": value,
                "steps": [step["user_count"] for step in funnel["steps"]],
                "overall_conversion": funnel["overall_conversion"],
            }
        )

    return {"breakdown_property": breakdown_property, "segments": results}
