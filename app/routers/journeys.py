from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.analytics import (
    ConversionPathModel,
    DropOffPointModel,
    NextEventsModel,
    SessionStatsModel,
    TopPathsModel,
)
from app.models.schemas.common import UTCDateTime
from app.services.journey_service import JourneyService

router = APIRouter(prefix="/journeys", tags=["journeys"])


@router.get("/top-paths", response_model=TopPathsModel, summary="Most common session paths.")
def get_top_paths(
    max_steps: int = Query(5, ge=1, le=20),
    limit: int = Query(10, ge=1, le=100),
    min_occurrences: int = Query(1, ge=1),
    start_event: Optional[str] = Query(None),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return JourneyService(db).top_paths(
        max_steps, limit, min_occurrences, start_event, start_date, end_date
    )


@router.get("/drop-offs", response_model=List[DropOffPointModel], summary="Where sessions end.")
def get_drop_offs(
    min_events: int = Query(2, ge=1),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return JourneyService(db).drop_offs(min_events, start_date, end_date)


@router.get(
    "/conversion-paths",
    response_model=List[ConversionPathModel],
    summary="Paths leading to a goal event.",
)
def get_conversion_paths(
    goal_event: str = Query(..., min_length=1),
    before_steps: int = Query(5, ge=1, le=20),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return JourneyService(db).conversion_paths(goal_event, before_steps, limit)


@router.get("/next-events", response_model=NextEventsModel, summary="What follows an event.")
def get_next_events(
    event_name: str = Query(..., min_length=1),
    depth: int = Query(3, ge=1, le=10),
    db: Session = Depends(get_db),
):
    return JourneyService(db).next_events(event_name, depth)


@router.get("/session-stats", response_model=SessionStatsModel, summary="Session duration and size.")
def get_session_stats(db: Session = Depends(get_db)):
    return JourneyService(db).session_stats()
