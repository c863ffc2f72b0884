import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.analytics.funnel import analyze_funnel, funnel_breakdown, step_timings
from app.core.exceptions import InvalidInputError, NotFoundError
from app.models.schemas.analytics import FunnelCreateModel, FunnelModel
from app.repositories.event_repo import EventRepository
from app.repositories.funnel_repo import FunnelRepository
from app.services.event_service import validate_window

logger = logging.getLogger(__name__)

BREAKDOWN_PROPERTIES = ("device_type", "browser", "country", "city")


def validate_steps(steps: Sequence[str]) -> None:
    if len(steps) < 2:
        raise InvalidInputError("A funnel needs at least 2 steps.")
    if len(set(steps)) != len(steps):
        raise InvalidInputError("Funnel steps must be distinct event names.")


class FunnelService:
    def __init__(self, db: Session):
        self.event_repo = EventRepository(db)
        self.funnel_repo = FunnelRepository(db)

    def _step_events(self, steps, start_date, end_date, cohort_id=None):
        validate_steps(steps)
        validate_window(start_date, end_date)
        return self.event_repo.get_events(
            event_names=list(steps), start_date=start_date, end_date=end_date, cohort_id=cohort_id
        )

    def analyze(
        self,
        steps: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        cohort_id: Optional[str] = None,
    ) -> dict:
        """The window is the exact instant range [start_date, end_date]; the end is not widened to a whole day."""
        events = self._step_events(steps, start_date, end_date, cohort_id)
        logger.debug("Analyzing funnel %s over %d events", list(steps), len(events))
        return analyze_funnel(events, steps, start_date, end_date)

    def timings(self, steps: Sequence[str], start_date: datetime, end_date: datetime) -> List[dict]:
        events = self._step_events(steps, start_date, end_date)
        return step_timings(events, steps, start_date, end_date)

    def breakdown(
        self,
        steps: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        breakdown_property: str,
    ) -> dict:
        if breakdown_property not in BREAKDOWN_PROPERTIES:
            raise InvalidInputError(f"Cannot break a funnel down by {breakdown_property}.")
        events = self._step_events(steps, start_date, end_date)
        return funnel_breakdown(events, steps, breakdown_property, start_date, end_date)

    def create_funnel(self, funnel_data: FunnelCreateModel) -> FunnelModel:
        validate_steps(funnel_data.steps)
        funnel = self.funnel_repo.create_funnel(funnel_data)
        logger.info("Saved funnel %s (%s)", funnel.funnel_id, funnel.name)
        return FunnelModel.model_validate(funnel)

    def list_funnels(self) -> List[FunnelModel]:
        return [FunnelModel.model_validate(f) for f in self.funnel_repo.list_funnels()]

    def analyze_saved(
        self,
        funnel_id: str,
        start_date: datetime,
        end_date: datetime,
        cohort_id: Optional[str] = None,
    ) -> dict:
        funnel = self.funnel_repo.get_funnel(funnel_id)
        if funnel is None:
            raise NotFoundError("Funnel", funnel_id)
        return self.analyze(funnel.steps, start_date, end_date, cohort_id)
