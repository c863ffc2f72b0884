from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.analytics import ChurnModel, DayNRetentionModel, RetentionResultModel
from app.models.schemas.common import UTCDateTime
from app.services.retention_service import RetentionService

router = APIRouter(prefix="/retention", tags=["retention"])


@router.get("", response_model=RetentionResultModel, summary="Cohort retention table.")
def get_retention(
    granularity: str = Query("week", description="day, week or month"),
    periods: int = Query(12, ge=1, le=52),
    db: Session = Depends(get_db),
):
    return RetentionService(db).cohort_retention(granularity, periods)


@router.get("/day-n", response_model=List[DayNRetentionModel], summary="Day-N retention.")
def get_day_n_retention(
    days: List[int] = Query([1, 7, 30]),
    as_of: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return RetentionService(db).day_n(days, as_of)


@router.get("/churn", response_model=ChurnModel, summary="Churn between two periods.")
def get_churn(
    period: str = Query("month", description="week or month"),
    as_of: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return RetentionService(db).churn(period, as_of)
