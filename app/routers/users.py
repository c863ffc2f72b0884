from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.analytics import UserJourneyModel
from app.models.schemas.common import UTCDateTime
from app.models.schemas.user import (
    FirstEventModel,
    UserDetailModel,
    UserListResponseModel,
    UserUpsertModel,
    UserUpsertResponseModel,
)
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=UserUpsertResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Create or update a user profile.",
)
def post_user(user_data: UserUpsertModel, db: Session = Depends(get_db)):
    return UserService(db).upsert_user(user_data)


@router.get(
    "",
    response_model=UserListResponseModel,
    summary="List users with optional filters.",
)
def get_users(
    cohort_id: Optional[str] = Query(None),
    created_after: Optional[UTCDateTime] = Query(None),
    created_before: Optional[UTCDateTime] = Query(None),
    active_since: Optional[UTCDateTime] = Query(None, description="Only users seen at or after this time."),
    sort: str = Query("created_at", description="created_at or last_seen."),
    order: str = Query("desc", description="asc or desc."),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    include_stats: bool = Query(False),
    db: Session = Depends(get_db),
):
    return UserService(db).list_users(
        cohort_id=cohort_id,
        created_after=created_after,
        created_before=created_before,
        active_since=active_since,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
        include_stats=include_stats,
    )


@router.get(
    "/{user_id}",
    response_model=UserDetailModel,
    summary="Get a user with activity stats.",
)
def get_user(
    user_id: str = Path(..., description="The ID of the user."),
    include_events: bool = Query(False),
    event_limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return UserService(db).get_user(user_id, include_events, event_limit)


@router.get(
    "/{user_id}/first-event",
    response_model=FirstEventModel,
    summary="Timestamp of a user's first recorded event.",
)
def get_first_event(
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
):
    return UserService(db).first_event_timestamp(user_id)


@router.get(
    "/{user_id}/journey",
    response_model=UserJourneyModel,
    summary="A user's events grouped into sessions.",
)
def get_user_journey(
    user_id: str = Path(..., description="The ID of the user."),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return UserService(db).get_journey(user_id, limit)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Erase a user and all of their data.",
)
def delete_user(
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
):
    UserService(db).erase_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
