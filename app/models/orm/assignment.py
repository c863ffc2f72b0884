from datetime import datetime

from sqlalchemy import Column, String, ForeignKey, DateTime, PrimaryKeyConstraint
from sqlalchemy.orm import relationship

from .base import Base


class AssignmentORM(Base):
    __tablename__ = "assignments"

    user_id = Column(String, nullable=False, index=True)
    experiment_id = Column(
        String, ForeignKey("experiments.experiment_id"), nullable=False, index=True
    )
    variant_id = Column(String, ForeignKey("variants.variant_id"), nullable=False)

    assignment_timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    # One variant per (user, experiment)
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "experiment_id", name="assignment_pk"),
    )

    variant = relationship("VariantORM")

    experiment = relationship("ExperimentORM")
