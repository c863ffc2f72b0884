from datetime import datetime, time
from typing import List, Optional

from sqlalchemy.orm import Session

from app.analytics import adoption
from app.core.exceptions import InvalidInputError
from app.repositories.event_repo import EventRepository
from app.repositories.user_repo import UserRepository
from app.services.event_service import validate_window


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max)


class AdoptionService:
    def __init__(self, db: Session):
        self.event_repo = EventRepository(db)
        self.user_repo = UserRepository(db)

    def feature_adoption(self, event_name: str, start_date: datetime, end_date: datetime) -> dict:
        """Daily series over calendar days, so end_date covers its whole day."""
        validate_window(start_date, end_date)
        end_date = end_of_day(end_date)
        # Full history up to the end date: trailing windows and cumulative adoption reach back
        events = self.event_repo.get_events(event_names=[event_name], end_date=end_date)
        return adoption.feature_adoption(
            events, self.user_repo.list_created_at(), event_name, start_date, end_date
        )

    def power_users(
        self,
        event_name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        min_usage: int = 10,
        limit: int = 100,
    ) -> List[dict]:
        validate_window(start_date, end_date)
        if min_usage < 1:
            raise InvalidInputError("min_usage must be positive.")
        events = self.event_repo.get_events([event_name], start_date, end_date)
        return adoption.power_users(events, min_usage=min_usage, limit=limit)

    def usage_distribution(
        self,
        event_name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        validate_window(start_date, end_date)
        events = self.event_repo.get_events([event_name], start_date, end_date)
        return adoption.usage_distribution(events, event_name)

    def time_to_adoption(self, event_name: str) -> dict:
        first_use = {}
        for event in self.event_repo.get_events([event_name]):
            first_use.setdefault(event.user_id, event.timestamp)
        return adoption.time_to_adoption(first_use, self.user_repo.created_at_by_user(), event_name)
