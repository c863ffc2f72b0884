from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .event import EventModel


class UserUpsertModel(BaseModel):
    """Create a user, or update the provided fields of an existing one."""

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None
    # Merged into the stored properties; new keys win
    properties: Dict = Field(default_factory=dict)
    cohort_id: Optional[str] = None


class UserModel(BaseModel):
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime
    last_seen: Optional[datetime] = None
    properties: Dict = Field(default_factory=dict)
    cohort_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserUpsertResponseModel(BaseModel):
    user: UserModel
    created: bool


class UserStatsModel(BaseModel):
    total_events: int
    first_event: Optional[datetime] = None
    last_event: Optional[datetime] = None
    session_count: int


class FirstEventModel(BaseModel):
    user_id: str
    first_event: Optional[datetime] = None


class UserDetailModel(UserModel):
    stats: UserStatsModel
    recent_events: Optional[List[EventModel]] = None


class UserListItemModel(UserModel):
    stats: Optional[UserStatsModel] = None


class UserListResponseModel(BaseModel):
    users: List[UserListItemModel]
    count: int
    total: int
    limit: int
    offset: int
