import logging
import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailableError
from app.models.orm.event import EventORM
from app.models.orm.user import UserORM
from app.models.schemas.event import EventCreateModel

logger = logging.getLogger(__name__)

# Columns that may be used to filter or break events down
FILTERABLE_COLUMNS = ("event_name", "user_id", "session_id", "device_type", "browser", "country", "city")


def _apply_window(stmt, start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date is not None:
        stmt = stmt.where(EventORM.timestamp >= start_date)
    if end_date is not None:
        stmt = stmt.where(EventORM.timestamp <= end_date)
    return stmt


class EventRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def build_event(self, event_data: EventCreateModel) -> EventORM:
        """Builds (but does not persist) an EventORM from the API model."""
        event_dict = event_data.model_dump()
        event_dict["event_id"] = str(uuid.uuid4())
        if event_dict.get("timestamp") is None:
            event_dict["timestamp"] = datetime.utcnow()
        return EventORM(**event_dict)

    def add_event(self, event: EventORM) -> EventORM:
        """Adds an event to the current unit of work; the caller commits."""
        self.db.add(event)
        return event

    def query_events(
        self,
        filters: Optional[dict] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[EventORM], int]:
        """
        Returns the matching events (newest first) and the total number of matches.
        Only columns in FILTERABLE_COLUMNS are accepted as filters.
        """
        stmt = select(EventORM)
        for column, value in (filters or {}).items():
            if value is None:
                continue
            if column not in FILTERABLE_COLUMNS:
                raise ValueError(f"Cannot filter events by {column}")
            stmt = stmt.where(getattr(EventORM, column) == value)
        stmt = _apply_window(stmt, start_date, end_date)

        try:
            total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
            stmt = stmt.order_by(EventORM.timestamp.desc()).offset(offset)
            if limit is not None:
                stmt = stmt.limit(limit)
            return list(self.db.scalars(stmt).all()), total
        except SQLAlchemyError as e:
            logger.error("Failed to query events: %s", e)
            raise StoreUnavailableError("Failed to query events.")

    def get_events(
        self,
        event_names: Optional[Sequence[str]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        user_ids: Optional[Sequence[str]] = None,
        cohort_id: Optional[str] = None,
    ) -> list[EventORM]:
        """Unpaginated read used by the analytics services, oldest first."""
        stmt = select(EventORM)
        if event_names is not None:
            stmt = stmt.where(EventORM.event_name.in_(event_names))
        if user_ids is not None:
            stmt = stmt.where(EventORM.user_id.in_(user_ids))
        if cohort_id is not None:
            stmt = stmt.join(UserORM, UserORM.user_id == EventORM.user_id).where(
                UserORM.cohort_id == cohort_id
            )
        stmt = _apply_window(stmt, start_date, end_date).order_by(EventORM.timestamp)

        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error("Failed to read events: %s", e)
            raise StoreUnavailableError("Failed to read events.")

    def distinct_users(
        self,
        event_name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> int:
        stmt = select(func.count(func.distinct(EventORM.user_id))).where(
            EventORM.event_name == event_name
        )
        stmt = _apply_window(stmt, start_date, end_date)
        try:
            return self.db.scalar(stmt) or 0
        except SQLAlchemyError as e:
            logger.error("Failed to count distinct users: %s", e)
            raise StoreUnavailableError("Failed to count distinct users.")

    def summary(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[tuple[str, int, int]]:
        """(event_name, total events, distinct users) per event name, most frequent first."""
        stmt = select(
            EventORM.event_name,
            func.count(EventORM.event_id),
            func.count(func.distinct(EventORM.user_id)),
        ).group_by(EventORM.event_name)
        stmt = _apply_window(stmt, start_date, end_date)
        stmt = stmt.order_by(func.count(EventORM.event_id).desc(), EventORM.event_name)
        try:
            return [tuple(row) for row in self.db.execute(stmt).all()]
        except SQLAlchemyError as e:
            logger.error("Failed to summarise events: %s", e)
            raise StoreUnavailableError("Failed to summarise events.")

    def count_distinct_users(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> int:
        stmt = _apply_window(select(func.count(func.distinct(EventORM.user_id))), start_date, end_date)
        try:
            return self.db.scalar(stmt) or 0
        except SQLAlchemyError as e:
            logger.error("Failed to count users: %s", e)
            raise StoreUnavailableError("Failed to count users.")

    def first_event_timestamp(self, user_id: str) -> Optional[datetime]:
        stmt = select(func.min(EventORM.timestamp)).where(EventORM.user_id == user_id)
        try:
            return self.db.scalar(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to read first event for %s: %s", user_id, e)
            raise StoreUnavailableError("Failed to read first event.")

    def user_stats(self, user_id: str) -> dict:
        stmt = select(
            func.count(EventORM.event_id),
            func.min(EventORM.timestamp),
            func.max(EventORM.timestamp),
            func.count(func.distinct(EventORM.session_id)),
        ).where(EventORM.user_id == user_id)
        try:
            total, first, last, sessions = self.db.execute(stmt).one()
        except SQLAlchemyError as e:
            logger.error("Failed to read stats for %s: %s", user_id, e)
            raise StoreUnavailableError("Failed to read user stats.")
        return {
            "total_events": total,
            "first_event": first,
            "last_event": last,
            "session_count": sessions,
        }

    def delete_for_user(self, user_id: str) -> int:
        """Deletes a user's events in the current unit of work; the caller commits."""
        result = self.db.execute(delete(EventORM).where(EventORM.user_id == user_id))
        return result.rowcount
