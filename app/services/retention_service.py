from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.analytics.retention import GRANULARITIES, analyze_retention, churn_rate, day_n_retention
from app.core.exceptions import InvalidInputError
from app.repositories.event_repo import EventRepository


class RetentionService:
    def __init__(self, db: Session):
        self.event_repo = EventRepository(db)

    def cohort_retention(self, granularity: str = "week", periods: int = 12) -> dict:
        if granularity not in GRANULARITIES:
            raise InvalidInputError(f"Unsupported granularity: {granularity}")
        if periods < 1:
            raise InvalidInputError("periods must be at least 1.")
        # Cohorts depend on each user's first-ever event, so the full history is read
        return analyze_retention(self.event_repo.get_events(), granularity, periods)

    def day_n(self, days: Sequence[int], as_of: Optional[datetime] = None) -> List[dict]:
        if not days or any(day < 1 for day in days):
            raise InvalidInputError("days must be positive integers.")
        return day_n_retention(self.event_repo.get_events(), days, as_of or datetime.utcnow())

    def churn(self, period: str = "month", as_of: Optional[datetime] = None) -> dict:
        if period not in ("week", "month"):
            raise InvalidInputError(f"Unsupported churn period: {period}")
        return churn_rate(self.event_repo.get_events(), period, as_of or datetime.utcnow())
