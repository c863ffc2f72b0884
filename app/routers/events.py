from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.common import UTCDateTime
from app.models.schemas.event import (
    DistinctUsersResponseModel,
    EventBatchCreateModel,
    EventBatchResponseModel,
    EventCreateModel,
    EventQueryResponseModel,
    EventResponseModel,
    EventSummaryResponseModel,
)
from app.services.event_service import EventService

router = APIRouter(prefix="/events", tags=["events"])


@router.post(
    "",
    response_model=EventResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Record a new user event.",
)
def post_event(event_data: EventCreateModel, db: Session = Depends(get_db)):
    return EventService(db).record_event(event_data)


@router.post(
    "/batch",
    response_model=EventBatchResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Record a batch of events.",
)
def post_event_batch(batch: EventBatchCreateModel, db: Session = Depends(get_db)):
    """Valid events are stored even when others in the batch are rejected."""
    return EventService(db).record_events(batch.events)


@router.get(
    "",
    response_model=EventQueryResponseModel,
    summary="Query events, newest first.",
)
def get_events(
    event_name: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    device_type: Optional[str] = Query(None),
    browser: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    filters = {
        "event_name": event_name,
        "user_id": user_id,
        "session_id": session_id,
        "device_type": device_type,
        "browser": browser,
        "country": country,
        "city": city,
    }
    return EventService(db).query_events(filters, start_date, end_date, limit, offset)


@router.get(
    "/summary",
    response_model=EventSummaryResponseModel,
    summary="Event counts per event name.",
)
def get_event_summary(
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return EventService(db).summary(start_date, end_date)


@router.get(
    "/distinct-users",
    response_model=DistinctUsersResponseModel,
    summary="Number of distinct users who fired an event.",
)
def get_distinct_users(
    event_name: str = Query(..., min_length=1),
    start_date: Optional[UTCDateTime] = Query(None),
    end_date: Optional[UTCDateTime] = Query(None),
    db: Session = Depends(get_db),
):
    return EventService(db).distinct_users(event_name, start_date, end_date)
