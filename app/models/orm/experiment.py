from sqlalchemy import Column, String, Float, Boolean, ForeignKey, DateTime, Integer, Text, Enum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from .base import Base, JSON_TYPE


# Use Python Enum for constrained choices like Experiment Status
class ExperimentStatus(enum.Enum):
    DRAFT = "DRAFT"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


# --- Experiment Model ---
class ExperimentORM(Base):
    __tablename__ = 'experiments'

    # --- Core Identifiers ---
    experiment_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text)

    # --- Lifecycle ---
    status = Column(Enum(ExperimentStatus), default=ExperimentStatus.RUNNING, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # --- Timing and Duration ---
    start_time = Column(DateTime, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)

    # --- Analysis ---
    # A user converts when they fire this event after being assigned
    goal_event = Column(String, nullable=False)

    # One Experiment has Many Variants, control first
    variants = relationship(
        "VariantORM", back_populates="experiment", order_by="VariantORM.position"
    )

    # Events tagged with this experiment at ingestion time
    events = relationship("EventORM", back_populates="experiment")


# --- Variant Configuration Model ---
class VariantORM(Base):
    __tablename__ = 'variants'

    variant_id = Column(String, primary_key=True)
    variant_name = Column(String, nullable=False)
    traffic_allocation_percent = Column(Float, nullable=False)
    is_control = Column(Boolean, default=False)
    position = Column(Integer, nullable=False, default=0)

    # Additional configuration details (e.g., feature flag overrides)
    configuration_json = Column(JSON_TYPE, nullable=True)

    experiment_id = Column(String, ForeignKey('experiments.experiment_id'), nullable=False, index=True)

    experiment = relationship("ExperimentORM", back_populates="variants")
