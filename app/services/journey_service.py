from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.analytics import journey
from app.core.exceptions import InvalidInputError
from app.repositories.event_repo import EventRepository
from app.services.event_service import validate_window


class JourneyService:
    def __init__(self, db: Session):
        self.event_repo = EventRepository(db)

    def _events(self, start_date=None, end_date=None):
        validate_window(start_date, end_date)
        return self.event_repo.get_events(start_date=start_date, end_date=end_date)

    def top_paths(
        self,
        max_steps: int = 5,
        limit: int = 10,
        min_occurrences: int = 1,
        start_event: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        if max_steps < 1 or limit < 1 or min_occurrences < 1:
            raise InvalidInputError("max_steps, limit and min_occurrences must be positive.")
        return journey.top_paths(
            self._events(start_date, end_date),
            max_steps=max_steps,
            limit=limit,
            min_occurrences=min_occurrences,
            start_event=start_event,
        )

    def drop_offs(
        self,
        min_events: int = 2,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[dict]:
        return journey.drop_off_points(self._events(start_date, end_date), min_events=min_events)

    def conversion_paths(self, goal_event: str, before_steps: int = 5, limit: int = 10) -> List[dict]:
        if before_steps < 1:
            raise InvalidInputError("before_steps must be positive.")
        return journey.conversion_paths(self._events(), goal_event, before_steps, limit)

    def next_events(self, event_name: str, depth: int = 3) -> dict:
        if depth < 1:
            raise InvalidInputError("depth must be positive.")
        return journey.next_events(self._events(), event_name, depth)

    def session_stats(self) -> dict:
        return journey.session_stats(self._events())
