import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import ConflictError, StoreUnavailableError
from app.models.orm.experiment import ExperimentORM, ExperimentStatus, VariantORM
from app.models.schemas.experiment import ExperimentCreateModel

logger = logging.getLogger(__name__)


class ExperimentRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def create_experiment(self, experiment_data: ExperimentCreateModel) -> ExperimentORM:
        """
        Creates an experiment together with its variants in one transaction.

        Variant order is kept, except that a variant flagged ``is_control`` is
        moved to the front, so the first variant is always the control.

        Raises:
            ValueError: allocations do not total 100%, or several controls are flagged.
            ConflictError: an experiment with the same name exists.
        """
        total_allocation = sum(v.traffic_allocation_percent for v in experiment_data.variants)
        if abs(total_allocation - 100.0) > 1e-6:
            raise ValueError(f"Total traffic allocation must be 100%. Got: {total_allocation}%")

        controls = [v for v in experiment_data.variants if v.is_control]
        if len(controls) > 1:
            raise ValueError("Only one variant can be the control.")
        names = [v.variant_name for v in experiment_data.variants]
        if len(set(names)) != len(names):
            raise ValueError("Variant names must be unique within an experiment.")

        ordered = controls + [v for v in experiment_data.variants if not v.is_control]

        try:
            experiment_id = str(uuid.uuid4())

            experiment_data_dict = experiment_data.model_dump(exclude={"variants"})
            experiment_data_dict["experiment_id"] = experiment_id
            experiment_data_dict["status"] = ExperimentStatus(experiment_data.status)
            if experiment_data_dict["start_time"] is None:
                experiment_data_dict["start_time"] = datetime.utcnow()

            db_experiment = ExperimentORM(**experiment_data_dict)
            self.db.add(db_experiment)

            for position, variant_data in enumerate(ordered):
                variant_dict = variant_data.model_dump()
                variant_dict["variant_id"] = str(uuid.uuid4())
                variant_dict["experiment_id"] = experiment_id
                variant_dict["position"] = position
                variant_dict["is_control"] = position == 0
                self.db.add(VariantORM(**variant_dict))

            self.db.commit()
            self.db.refresh(db_experiment)
            return db_experiment

        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Experiment %r rejected: %s", experiment_data.name, e)
            raise ConflictError(f"An experiment named {experiment_data.name!r} already exists.")

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error during experiment creation: %s", e)
            raise StoreUnavailableError("A database error occurred during experiment creation.")

    def get_experiment_with_variants(self, experiment_id: str) -> ExperimentORM | None:
        """
        Fetches a single Experiment by experiment_id and eagerly loads all
        associated VariantORM objects in a single query.
        """
        stmt = select(ExperimentORM).where(ExperimentORM.experiment_id == experiment_id)
        stmt = stmt.options(joinedload(ExperimentORM.variants))

        try:
            return self.db.scalars(stmt).unique().one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to read experiment %s: %s", experiment_id, e)
            raise StoreUnavailableError("Failed to read experiment.")

    def list_experiments(self) -> list[ExperimentORM]:
        stmt = (
            select(ExperimentORM)
            .options(joinedload(ExperimentORM.variants))
            .order_by(ExperimentORM.created_at.desc())
        )
        try:
            return list(self.db.scalars(stmt).unique().all())
        except SQLAlchemyError as e:
            logger.error("Failed to list experiments: %s", e)
            raise StoreUnavailableError("Failed to list experiments.")
