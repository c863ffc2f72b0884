from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime

from .common import UTCDateTime


#  event posting flow


class EventCreateModel(BaseModel):
    """Schema for creating a new Event (API Input)."""

    event_name: str = Field(..., min_length=1, description="e.g., 'page_view', 'signup'")
    user_id: str = Field(..., min_length=1)
    # The server sets the timestamp when the client does not send one.
    timestamp: Optional[UTCDateTime] = None

    properties: Dict = Field(default_factory=dict, description="Flexible JSON object.")

    session_id: Optional[str] = None
    page_url: Optional[str] = None
    referrer: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None

    experiment_id: Optional[str] = None


class EventBatchCreateModel(BaseModel):
    events: List[Dict] = Field(..., description="Raw events, validated one by one.")


class EventResponseModel(BaseModel):
    event_id: str
    timestamp: datetime
    experiment_id: Optional[str] = None


class EventBatchErrorModel(BaseModel):
    index: int
    error: str


class EventBatchResponseModel(BaseModel):
    tracked_count: int
    failed_count: int
    results: List[EventResponseModel]
    errors: List[EventBatchErrorModel] = Field(default_factory=list)


class EventModel(BaseModel):
    """A stored event, as returned by queries."""

    event_id: str
    event_name: str
    user_id: str
    timestamp: datetime
    properties: Dict = Field(default_factory=dict)
    session_id: Optional[str] = None
    page_url: Optional[str] = None
    referrer: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    experiment_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EventQueryResponseModel(BaseModel):
    events: List[EventModel]
    count: int
    total: int
    limit: int
    offset: int


class EventNameSummaryModel(BaseModel):
    event_name: str
    total_events: int
    unique_users: int


class EventSummaryResponseModel(BaseModel):
    total_events: int
    unique_users: int
    events: List[EventNameSummaryModel]


class DistinctUsersResponseModel(BaseModel):
    event_name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    distinct_users: int
