# services/event_service.py
import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AnalyticsError, InvalidInputError, NotFoundError, StoreUnavailableError
from app.core.settings import config_settings
from app.models.schemas.event import (
    DistinctUsersResponseModel,
    EventBatchErrorModel,
    EventBatchResponseModel,
    EventCreateModel,
    EventModel,
    EventNameSummaryModel,
    EventQueryResponseModel,
    EventResponseModel,
    EventSummaryResponseModel,
)
from app.repositories.event_repo import EventRepository
from app.repositories.experiment_repo import ExperimentRepository
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


def validate_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date.")


class EventService:
    def __init__(self, db: Session):
        """Initializes the service with repositories it needs."""
        self.db = db
        self.event_repo = EventRepository(db)
        self.user_repo = UserRepository(db)
        self.experiment_repo = ExperimentRepository(db)

    def record_event(self, event_data: EventCreateModel) -> EventResponseModel:
        """
        Records one event.
        1. Checks the experiment context, when one is given.
        2. Creates the user on first sight and moves last_seen forward.
        3. Appends the event.
        """
        if event_data.experiment_id and not self.experiment_repo.get_experiment_with_variants(
            event_data.experiment_id
        ):
            raise NotFoundError("Experiment", event_data.experiment_id)

        event = self.event_repo.build_event(event_data)
        try:
            self.user_repo.touch_user(event.user_id, event.timestamp)
            self.event_repo.add_event(event)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to record event %s for %s: %s", event.event_name, event.user_id, e)
            raise StoreUnavailableError("Failed to record event.")

        return EventResponseModel(
            event_id=event.event_id,
            timestamp=event.timestamp,
            experiment_id=event.experiment_id,
        )

    def record_events(self, raw_events: List[dict]) -> EventBatchResponseModel:
        """Records a batch; invalid items are reported without failing the others."""
        if not raw_events:
            raise InvalidInputError("events array cannot be empty.")
        if len(raw_events) > config_settings.EVENT_BATCH_LIMIT:
            raise InvalidInputError(
                f"Maximum {config_settings.EVENT_BATCH_LIMIT} events per batch request."
            )

        results: List[EventResponseModel] = []
        errors: List[EventBatchErrorModel] = []
        for index, raw_event in enumerate(raw_events):
            try:
                results.append(self.record_event(EventCreateModel.model_validate(raw_event)))
            except ValidationError as e:
                errors.append(EventBatchErrorModel(index=index, error=str(e.errors()[0]["msg"])))
            except AnalyticsError as e:
                errors.append(EventBatchErrorModel(index=index, error=e.message))

        if errors:
            logger.warning("Batch ingestion: %d of %d events rejected", len(errors), len(raw_events))
        return EventBatchResponseModel(
            tracked_count=len(results),
            failed_count=len(errors),
            results=results,
            errors=errors,
        )

    def query_events(
        self,
        filters: dict,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> EventQueryResponseModel:
        validate_window(start_date, end_date)
        limit = max(1, min(limit, config_settings.EVENT_QUERY_MAX_LIMIT))
        offset = max(0, offset)
        try:
            events, total = self.event_repo.query_events(filters, start_date, end_date, limit, offset)
        except ValueError as e:
            raise InvalidInputError(str(e))

        return EventQueryResponseModel(
            events=[EventModel.model_validate(event) for event in events],
            count=len(events),
            total=total,
            limit=limit,
            offset=offset,
        )

    def distinct_users(
        self,
        event_name: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> DistinctUsersResponseModel:
        validate_window(start_date, end_date)
        return DistinctUsersResponseModel(
            event_name=event_name,
            start_date=start_date,
            end_date=end_date,
            distinct_users=self.event_repo.distinct_users(event_name, start_date, end_date),
        )

    def summary(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> EventSummaryResponseModel:
        validate_window(start_date, end_date)
        rows = self.event_repo.summary(start_date, end_date)
        return EventSummaryResponseModel(
            total_events=sum(total for _, total, _ in rows),
            unique_users=self.event_repo.count_distinct_users(start_date, end_date),
            events=[
                EventNameSummaryModel(event_name=name, total_events=total, unique_users=users)
                for name, total, users in rows
            ],
        )
