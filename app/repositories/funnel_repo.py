import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailableError
from app.models.orm.funnel import FunnelORM
from app.models.schemas.analytics import FunnelCreateModel

logger = logging.getLogger(__name__)


class FunnelRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_funnel(self, funnel_data: FunnelCreateModel) -> FunnelORM:
        funnel = FunnelORM(
            funnel_id=str(uuid.uuid4()),
            name=funnel_data.name,
            description=funnel_data.description,
            steps=list(funnel_data.steps),
            created_by=funnel_data.created_by,
            created_at=datetime.utcnow(),
        )
        try:
            self.db.add(funnel)
            self.db.commit()
            self.db.refresh(funnel)
            return funnel
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to save funnel %r: %s", funnel_data.name, e)
            raise StoreUnavailableError("Failed to save funnel.")

    def get_funnel(self, funnel_id: str) -> Optional[FunnelORM]:
        try:
            return self.db.get(FunnelORM, funnel_id)
        except SQLAlchemyError as e:
            logger.error("Failed to read funnel %s: %s", funnel_id, e)
            raise StoreUnavailableError("Failed to read funnel.")

    def list_funnels(self) -> list[FunnelORM]:
        try:
            return list(self.db.scalars(select(FunnelORM).order_by(FunnelORM.created_at.desc())).all())
        except SQLAlchemyError as e:
            logger.error("Failed to list funnels: %s", e)
            raise StoreUnavailableError("Failed to list funnels.")
