import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.analytics.journey import user_journey
from app.core.exceptions import InvalidInputError, NotFoundError, StoreUnavailableError
from app.core.settings import config_settings
from app.models.schemas.event import EventModel
from app.models.schemas.user import (
    FirstEventModel,
    UserDetailModel,
    UserListItemModel,
    UserListResponseModel,
    UserModel,
    UserStatsModel,
    UserUpsertModel,
    UserUpsertResponseModel,
)
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.event_repo import EventRepository
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = ("created_at", "last_seen")


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)
        self.event_repo = EventRepository(db)
        self.assignment_repo = AssignmentRepository(db)

    def upsert_user(self, user_data: UserUpsertModel) -> UserUpsertResponseModel:
        user, created = self.user_repo.upsert_user(user_data)
        return UserUpsertResponseModel(user=UserModel.model_validate(user), created=created)

    def list_users(
        self,
        cohort_id: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        active_since: Optional[datetime] = None,
        sort: str = "created_at",
        order: str = "desc",
        limit: int = 50,
        offset: int = 0,
        include_stats: bool = False,
    ) -> UserListResponseModel:
        if sort not in USER_SORT_FIELDS:
            raise InvalidInputError(f"Cannot sort users by {sort}")
        if order not in ("asc", "desc"):
            raise InvalidInputError(f"Unsupported sort order: {order}")
        if created_after is not None and created_before is not None and created_after > created_before:
            raise InvalidInputError("created_after must not be after created_before.")
        limit = max(1, min(limit, config_settings.USER_LIST_MAX_LIMIT))
        offset = max(0, offset)

        users, total = self.user_repo.list_users(
            cohort_id=cohort_id,
            created_after=created_after,
            created_before=created_before,
            active_since=active_since,
            sort=sort,
            descending=order == "desc",
            limit=limit,
            offset=offset,
        )
        items = []
        for user in users:
            item = UserListItemModel.model_validate(user)
            if include_stats:
                item.stats = UserStatsModel(**self.event_repo.user_stats(user.user_id))
            items.append(item)

        return UserListResponseModel(
            users=items, count=len(items), total=total, limit=limit, offset=offset
        )

    def _require_user(self, user_id: str):
        user = self.user_repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user(self, user_id: str, include_events: bool = False, event_limit: int = 10) -> UserDetailModel:
        user = self._require_user(user_id)
        detail = UserDetailModel(
            **user.to_dict(),
            stats=UserStatsModel(**self.event_repo.user_stats(user_id)),
        )
        if include_events:
            events, _ = self.event_repo.query_events({"user_id": user_id}, limit=event_limit)
            detail.recent_events = [EventModel.model_validate(event) for event in events]
        return detail

    def first_event_timestamp(self, user_id: str) -> FirstEventModel:
        self._require_user(user_id)
        return FirstEventModel(
            user_id=user_id, first_event=self.event_repo.first_event_timestamp(user_id)
        )

    def get_journey(self, user_id: str, limit: int = 100) -> dict:
        self._require_user(user_id)
        events, _ = self.event_repo.query_events({"user_id": user_id}, limit=limit)
        return user_journey(user_id, events)

    def erase_user(self, user_id: str) -> None:
        """Removes the user together with their events and experiment assignments."""
        user = self._require_user(user_id)
        try:
            deleted_events = self.event_repo.delete_for_user(user_id)
            deleted_assignments = self.assignment_repo.delete_for_user(user_id)
            self.user_repo.delete_user(user)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to erase user %s: %s", user_id, e)
            raise StoreUnavailableError("Failed to erase user.")

        logger.info(
            "Erased user %s (%d events, %d assignments)", user_id, deleted_events, deleted_assignments
        )
