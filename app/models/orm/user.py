from datetime import datetime

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from .base import Base, JSON_TYPE


class UserORM(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)

    # Never changed once the row exists
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    last_seen = Column(DateTime, nullable=True)

    properties = Column(JSON_TYPE, default=dict, nullable=False)
    cohort_id = Column(String, nullable=True, index=True)

    events = relationship("EventORM", back_populates="user", passive_deletes=True)
