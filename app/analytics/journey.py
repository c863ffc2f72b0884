"""
User journey mapping over sessions.

A session is the time-ordered list of events sharing ``(user_id, session_id)``;
events recorded without a session id fall into a single session per user.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from app.analytics.common import in_window, minutes_between, percentage, round_to, sort_by_time

logger = logging.getLogger(__name__)

SessionKey = Tuple[str, Optional[str]]


def group_sessions(
    events: Iterable,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[SessionKey, List]:
    sessions: Dict[SessionKey, List] = defaultdict(list)
    for event in events:
        if in_window(event.timestamp, start, end):
            sessions[(event.user_id, getattr(event, "session_id", None))].append(event)
    return {key: sort_by_time(session) for key, session in sessions.items()}


def _names(session: List) -> List[str]:
    return [event.event_name for event in session]


def top_paths(
    events: Iterable,
    max_steps: int = 5,
    limit: int = 10,
    min_occurrences: int = 1,
    start_event: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    sessions = [_names(s) for s in group_sessions(events, start, end).values()]
    if start_event is not None:
        sessions = [names for names in sessions if start_event in names]

    total_sessions = len(sessions)
    counts = Counter(tuple(names[:max_steps]) for names in sessions)

    ranked = sorted(
        ((path, count) for path, count in counts.items() if count >= min_occurrences),
        key=lambda item: (-item[1], item[0]),
    )[:limit]

    logger.debug("Top paths: %d distinct over %d sessions", len(counts), total_sessions)
    return {
        "total_sessions": total_sessions,
        "paths": [
            {"path": list(path), "count": count, "percentage": percentage(count, total_sessions)}
            for path, count in ranked
        ],
    }


def drop_off_points(
    events: Iterable,
    min_events: int = 2,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[dict]:
    """Counts, per event name, the sessions that ended on it."""
    last_events = Counter(
        session[-1].event_name
        for session in group_sessions(events, start, end).values()
        if len(session) >= min_events
    )
    total = sum(last_events.values())

    return [
        {"event_name": name, "drop_off_count": count, "percentage": percentage(count, total)}
        for name, count in sorted(last_events.items(), key=lambda item: (-item[1], item[0]))
    ]


def conversion_paths(
    events: Iterable,
    goal_event: str,
    before_steps: int = 5,
    limit: int = 10,
) -> List[dict]:
    """Most common sequences of events leading up to the first goal event in a session."""
    goal_sessions = [
        names for names in map(_names, group_sessions(events).values()) if goal_event in names
    ]

    paths = Counter()
    for names in goal_sessions:
        goal_index = names.index(goal_event)
        before = names[max(0, goal_index - before_steps):goal_index]
        if before:
            paths[tuple(before) + (goal_event,)] += 1

    ranked = sorted(paths.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        {"path": list(path), "count": count, "conversion_rate": percentage(count, len(goal_sessions))}
        for path, count in ranked
    ]


def next_events(events: Iterable, event_name: str, depth: int = 3, top: int = 5) -> dict:
    """What typically happens 1..depth steps after ``event_name``."""
    step_counts: Dict[int, Counter] = defaultdict(Counter)
    for names in map(_names, group_sessions(events).values()):
        for index, name in enumerate(names):
            if name != event_name:
                continue
            for step in range(1, depth + 1):
                if index + step >= len(names):
                    break
                step_counts[step][names[index + step]] += 1

    next_steps = []
    for step in range(1, depth + 1):
        counts = step_counts[step]
        total = sum(counts.values())
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:top]
        next_steps.append(
            {
                "step": step,
                "events": [
                    {"event_name": name, "count": count, "percentage": percentage(count, total)}
                    for name, count in ranked
                ],
            }
        )
    return {"event": event_name, "next_events": next_steps}


def session_stats(events: Iterable) -> dict:
    """Duration and size of sessions with more than one event."""
    sessions = [s for s in group_sessions(events).values() if len(s) > 1]
    if not sessions:
        return {"total_sessions": 0, "avg_duration_minutes": 0.0, "avg_events_per_session": 0.0}

    durations = [minutes_between(s[0].timestamp, s[-1].timestamp) for s in sessions]
    return {
        "total_sessions": len(sessions),
        "avg_duration_minutes": round_to(sum(durations) / len(sessions)),
        "avg_events_per_session": round_to(sum(len(s) for s in sessions) / len(sessions)),
    }


def user_journey(user_id: str, events: Iterable) -> dict:
    """Groups one user's events into sessions, most recent session first."""
    events = list(events)
    sessions = group_sessions(events)
    ordered = sorted(sessions.items(), key=lambda item: item[1][-1].timestamp, reverse=True)

    return {
        "user_id": user_id,
        "total_events": len(events),
        "sessions": [
            {
                "session_id": session_id,
                "event_count": len(session),
                "events": [
                    {
                        "event_name": event.event_name,
                        "timestamp": event.timestamp,
                        "page_url": getattr(event, "page_url", None),
                        "properties": getattr(event, "properties", None) or {},
                    }
                    for event in session
                ],
            }
            for (_, session_id), session in ordered
        ],
    }
