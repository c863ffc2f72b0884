from datetime import datetime

from sqlalchemy import Column, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship

from .base import Base, JSON_TYPE


class EventORM(Base):
    __tablename__ = "events"

    event_id = Column(String, primary_key=True, index=True)

    event_name = Column(String, nullable=False, index=True)

    user_id = Column(String, ForeignKey("users.user_id"), nullable=False, index=True)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    properties = Column(JSON_TYPE, default=dict, nullable=False)

    # Web context, all optional
    session_id = Column(String, nullable=True, index=True)
    page_url = Column(String, nullable=True)
    referrer = Column(String, nullable=True)
    device_type = Column(String, nullable=True)
    browser = Column(String, nullable=True)
    country = Column(String, nullable=True)
    city = Column(String, nullable=True)

    experiment_id = Column(
        String, ForeignKey("experiments.experiment_id"), index=True, nullable=True
    )

    __table_args__ = (
        Index("ix_events_name_timestamp", "event_name", "timestamp"),
    )

    user = relationship("UserORM", back_populates="events")

    experiment = relationship("ExperimentORM", back_populates="events")
