# repositories/assignment_repo.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import StoreUnavailableError
from app.models.orm.assignment import AssignmentORM
from app.models.orm.event import EventORM

logger = logging.getLogger(__name__)


class AssignmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_assignment(self, experiment_id: str, user_id: str) -> Optional[AssignmentORM]:
        """Retrieves a persistent assignment for a user in a specific experiment."""
        stmt = (
            select(AssignmentORM)
            .options(joinedload(AssignmentORM.variant))
            .where(
                AssignmentORM.experiment_id == experiment_id,
                AssignmentORM.user_id == user_id,
            )
        )
        try:
            return self.db.scalars(stmt).one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to read assignment: %s", e)
            raise StoreUnavailableError("Failed to read assignment.")

    def get_assignments_for_experiment(self, experiment_id: str) -> list[AssignmentORM]:
        """All assignments of an experiment, oldest first."""
        stmt = (
            select(AssignmentORM)
            .where(AssignmentORM.experiment_id == experiment_id)
            .order_by(AssignmentORM.assignment_timestamp)
        )
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error("Failed to read assignments: %s", e)
            raise StoreUnavailableError("Failed to read assignments.")

    def first_conversions(self, experiment_id: str, goal_event: str) -> dict[str, tuple[str, datetime]]:
        """
        Maps each converted user to (variant_id, first conversion time). A user
        converts by firing goal_event at or after their assignment.
        """
        stmt = (
            select(
                AssignmentORM.user_id,
                AssignmentORM.variant_id,
                func.min(EventORM.timestamp),
            )
            .join(EventORM, EventORM.user_id == AssignmentORM.user_id)
            .where(
                AssignmentORM.experiment_id == experiment_id,
                EventORM.event_name == goal_event,
                EventORM.timestamp >= AssignmentORM.assignment_timestamp,
            )
            .group_by(AssignmentORM.user_id, AssignmentORM.variant_id)
        )
        try:
            return {
                user_id: (variant_id, converted_at)
                for user_id, variant_id, converted_at in self.db.execute(stmt).all()
            }
        except SQLAlchemyError as e:
            logger.error("Failed to read conversions: %s", e)
            raise StoreUnavailableError("Failed to read conversions.")

    def create_assignment(
        self,
        experiment_id: str,
        user_id: str,
        variant_id: str,
        assignment_timestamp: Optional[datetime] = None,
    ) -> AssignmentORM:
        """
        Creates a new assignment record.
        Raises ValueError when the user is already assigned in this experiment.
        """
        try:
            db_assignment = AssignmentORM(
                experiment_id=experiment_id,
                user_id=user_id,
                variant_id=variant_id,
                assignment_timestamp=assignment_timestamp or datetime.utcnow(),
            )

            self.db.add(db_assignment)
            self.db.commit()
            self.db.refresh(db_assignment)

            return db_assignment

        except IntegrityError:
            self.db.rollback()
            raise ValueError("Assignment already exists for this user and experiment.")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Exception occurred creating assignment: %s", e)
            raise StoreUnavailableError("Exception occurred during assignment creation")

    def delete_for_user(self, user_id: str) -> int:
        """Deletes a user's assignments in the current unit of work; the caller commits."""
        result = self.db.execute(delete(AssignmentORM).where(AssignmentORM.user_id == user_id))
        return result.rowcount
