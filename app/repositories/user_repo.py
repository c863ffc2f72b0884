import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailableError
from app.models.orm.user import UserORM
from app.models.schemas.user import UserUpsertModel

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[UserORM]:
        try:
            return self.db.get(UserORM, user_id)
        except SQLAlchemyError as e:
            logger.error("Failed to read user %s: %s", user_id, e)
            raise StoreUnavailableError("Failed to read user.")

    def upsert_user(self, user_data: UserUpsertModel) -> tuple[UserORM, bool]:
        """
        Creates the user, or merges the given fields into the existing row.
        Properties are merged key by key; created_at is left untouched.

        Returns the user and whether it was created.
        """
        try:
            user = self.db.get(UserORM, user_data.user_id)
            created = user is None
            if created:
                user = UserORM(
                    user_id=user_data.user_id,
                    email=user_data.email,
                    name=user_data.name,
                    properties=dict(user_data.properties),
                    cohort_id=user_data.cohort_id,
                    created_at=datetime.utcnow(),
                )
                self.db.add(user)
            else:
                for field in ("email", "name", "cohort_id"):
                    value = getattr(user_data, field)
                    if value is not None:
                        setattr(user, field, value)
                if user_data.properties:
                    # Reassign so the JSON column is flagged as modified
                    user.properties = {**(user.properties or {}), **user_data.properties}

            self.db.commit()
            self.db.refresh(user)
            return user, created

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to upsert user %s: %s", user_data.user_id, e)
            raise StoreUnavailableError("Failed to save user.")

    def touch_user(self, user_id: str, seen_at: datetime) -> UserORM:
        """
        Makes sure a user exists for an incoming event and moves last_seen forward.
        A new user's created_at is the event time, and a backfilled event older than
        created_at moves it back. The caller commits.
        """
        user = self.db.get(UserORM, user_id)
        if user is None:
            user = UserORM(user_id=user_id, created_at=seen_at, last_seen=seen_at, properties={})
            self.db.add(user)
            # Flush so a later event for the same user in this unit of work finds the row
            self.db.flush()
        else:
            if seen_at < user.created_at:
                user.created_at = seen_at
            if user.last_seen is None or seen_at > user.last_seen:
                user.last_seen = seen_at
        return user

    def list_users(
        self,
        cohort_id: Optional[str] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        active_since: Optional[datetime] = None,
        sort: str = "created_at",
        descending: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[UserORM], int]:
        """Returns a page of users and the total number of matches. Bounds are inclusive."""
        stmt = select(UserORM)
        if cohort_id is not None:
            stmt = stmt.where(UserORM.cohort_id == cohort_id)
        if created_after is not None:
            stmt = stmt.where(UserORM.created_at >= created_after)
        if created_before is not None:
            stmt = stmt.where(UserORM.created_at <= created_before)
        if active_since is not None:
            stmt = stmt.where(UserORM.last_seen >= active_since)

        column = getattr(UserORM, sort)
        order = column.desc() if descending else column.asc()
        try:
            total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
            stmt = stmt.order_by(order, UserORM.user_id).offset(offset).limit(limit)
            return list(self.db.scalars(stmt).all()), total
        except SQLAlchemyError as e:
            logger.error("Failed to list users: %s", e)
            raise StoreUnavailableError("Failed to list users.")

    def list_created_at(self) -> list[datetime]:
        try:
            return list(self.db.scalars(select(UserORM.created_at)).all())
        except SQLAlchemyError as e:
            logger.error("Failed to read user signups: %s", e)
            raise StoreUnavailableError("Failed to read users.")

    def created_at_by_user(self) -> dict[str, datetime]:
        try:
            return dict(self.db.execute(select(UserORM.user_id, UserORM.created_at)).all())
        except SQLAlchemyError as e:
            logger.error("Failed to read user signups: %s", e)
            raise StoreUnavailableError("Failed to read users.")

    def delete_user(self, user: UserORM) -> None:
        """Deletes the user row in the current unit of work; the caller commits."""
        self.db.delete(user)
