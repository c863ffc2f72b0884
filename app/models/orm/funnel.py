from datetime import datetime

from sqlalchemy import Column, String, DateTime, Text

from .base import Base, JSON_TYPE


class FunnelORM(Base):
    """A saved funnel definition: an ordered list of event names."""

    __tablename__ = "funnels"

    funnel_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    steps = Column(JSON_TYPE, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String, nullable=True)
