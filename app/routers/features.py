from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.analytics import (
    FeatureAdoptionModel,
    PowerUserModel,
    TimeToAdoptionModel,
    UsageDistributionModel,
)
from app.models.schemas.common import UTCDateTime
from app.services.adoption_service import AdoptionService

router = APIRouter(prefix="/features", tags=["features"])


@router.get(
    "/{event_name}/adoption",
    response_model=FeatureAdoptionModel,
    summary="Daily DAU/WAU/MAU and adoption of a feature.",
)
def get_feature_adoption(
    event_name: str = Path(..., description="Event that marks use of the feature."),
    start_date: UTCDateTime = Query(...),
    end_date: UTCDateTime = Query(...),
    db: Session = Depends(get_db),
):
    return AdoptionService(db).feature_adoption(event_name, start_date, end_date)


@router.get(
    "/{event_name}/power-users",
    response_model=List[PowerUserModel],
    summary="Heaviest users of a feature.",
)
def get_power_users(
    event_name: str = Path(...),
    min_usage: int = Query(10, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return AdoptionService(db).power_users(event_name, start_date, end_date, min_usage, limit)


@router.get(
    "/{event_name}/distribution",
    response_model=UsageDistributionModel,
    summary="Users bucketed by how often they used a feature.",
)
def get_usage_distribution(
    event_name: str = Path(...),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return AdoptionService(db).usage_distribution(event_name, start_date, end_date)


@router.get(
    "/{event_name}/time-to-adoption",
    response_model=TimeToAdoptionModel,
    summary="Time from signup to first use of a feature.",
)
def get_time_to_adoption(event_name: str = Path(...), db: Session = Depends(get_db)):
    return AdoptionService(db).time_to_adoption(event_name)
