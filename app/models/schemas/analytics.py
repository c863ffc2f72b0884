from datetime import date as Date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import UTCDateTime


# --- Funnels ---


class FunnelStepsModel(BaseModel):
    steps: List[str] = Field(..., min_length=2, description="Ordered event names")

    @field_validator("steps")
    @classmethod
    def steps_are_distinct(cls, steps: List[str]) -> List[str]:
        if len(set(steps)) != len(steps):
            raise ValueError("funnel steps must be distinct event names")
        return steps


class FunnelAnalyzeRequestModel(FunnelStepsModel):
    start_date: UTCDateTime
    end_date: UTCDateTime
    cohort_id: Optional[str] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class FunnelBreakdownRequestModel(FunnelAnalyzeRequestModel):
    breakdown_property: Literal["device_type", "browser", "country", "city"]


class FunnelCreateModel(FunnelStepsModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    created_by: Optional[str] = None


class FunnelModel(BaseModel):
    funnel_id: str
    name: str
    description: Optional[str] = None
    steps: List[str]
    created_at: datetime
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FunnelStepResultModel(BaseModel):
    step: int
    event_name: str
    user_count: int
    conversion_rate: float
    step_conversion_rate: float
    drop_off_count: int
    drop_off_rate: float


class FunnelResultModel(BaseModel):
    steps: List[FunnelStepResultModel]
    overall_conversion: float
    start_date: datetime
    end_date: datetime


class StepTimingModel(BaseModel):
    from_step: str
    to_step: str
    avg_minutes: float
    median_minutes: float
    sample_size: int


class FunnelBreakdownSegmentModel(BaseModel):
    value: str
    steps: List[int]
    overall_conversion: float


class FunnelBreakdownModel(BaseModel):
    breakdown_property: str
    segments: List[FunnelBreakdownSegmentModel]


# --- Retention ---


class RetentionCohortModel(BaseModel):
    cohort: str
    cohort_start: datetime
    cohort_size: int
    retention: List[float]


class RetentionResultModel(BaseModel):
    granularity: str
    periods: int
    cohorts: List[RetentionCohortModel]


class DayNRetentionModel(BaseModel):
    day: int
    total_users: int
    retained_users: int
    retention_rate: float


class ChurnModel(BaseModel):
    period: str
    previous_active: int
    current_active: int
    churned_users: int
    churn_rate: float


# --- Journeys ---


class JourneyPathModel(BaseModel):
    path: List[str]
    count: int
    percentage: float


class TopPathsModel(BaseModel):
    total_sessions: int
    paths: List[JourneyPathModel]


class DropOffPointModel(BaseModel):
    event_name: str
    drop_off_count: int
    percentage: float


class ConversionPathModel(BaseModel):
    path: List[str]
    count: int
    conversion_rate: float


class NextEventModel(BaseModel):
    event_name: str
    count: int
    percentage: float


class NextEventStepModel(BaseModel):
    step: int
    events: List[NextEventModel]


class NextEventsModel(BaseModel):
    event: str
    next_events: List[NextEventStepModel]


class SessionStatsModel(BaseModel):
    total_sessions: int
    avg_duration_minutes: float
    avg_events_per_session: float


class JourneyEventModel(BaseModel):
    event_name: str
    timestamp: datetime
    page_url: Optional[str] = None
    properties: Dict = Field(default_factory=dict)


class JourneySessionModel(BaseModel):
    session_id: Optional[str] = None
    event_count: int
    events: List[JourneyEventModel]


class UserJourneyModel(BaseModel):
    user_id: str
    total_events: int
    sessions: List[JourneySessionModel]


# --- Feature adoption ---


class AdoptionPointModel(BaseModel):
    date: Date
    dau: int
    wau: int
    mau: int
    adopted_users: int
    total_users: int
    adoption_rate: float


class StickinessModel(BaseModel):
    date: Date
    dau: int
    mau: int
    stickiness: float


class FeatureAdoptionModel(BaseModel):
    feature_event: str
    series: List[AdoptionPointModel]
    stickiness: Optional[StickinessModel] = None


class PowerUserModel(BaseModel):
    user_id: str
    usage_count: int
    first_use: datetime
    last_use: datetime
    days_active: int


class UsageBucketModel(BaseModel):
    usage_range: str
    user_count: int
    percentage: float


class UsageDistributionModel(BaseModel):
    feature_event: str
    total_users: int
    distribution: List[UsageBucketModel]


class TimeToAdoptionModel(BaseModel):
    feature_event: str
    sample_size: int
    avg_minutes: float
    median_minutes: float
