from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import UTCDateTime


class VariantConfig(BaseModel):
    """Configuration for a single variant in an experiment."""

    variant_name: str = Field(..., min_length=1)
    traffic_allocation_percent: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Percentage of traffic allocated to this variant.",
    )
    # Optional: configuration specific to the variant (e.g., feature flags, content IDs)
    configuration_json: Optional[Dict] = None
    is_control: bool = False


class ExperimentCreateModel(BaseModel):
    """Input for creating an experiment; the first (or is_control) variant is the control."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: Literal["DRAFT", "RUNNING", "PAUSED", "COMPLETED", "ARCHIVED"] = "RUNNING"
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    variants: List[VariantConfig] = Field(..., min_length=2)
    goal_event: str = Field(..., min_length=1, description="Event that counts as a conversion")


class ExperimentVariantConfigResponseModel(BaseModel):
    variant_id: str
    variant_name: str
    traffic_allocation_percent: float
    is_control: bool

    model_config = ConfigDict(from_attributes=True)


class ExperimentResponseModel(BaseModel):
    experiment_id: str = Field(..., description="Unique ID for the experiment.")
    name: str
    description: Optional[str] = None
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    variants: List[ExperimentVariantConfigResponseModel]
    goal_event: str
    total_traffic_allocation: float = Field(
        ...,
        description="Sum of all variant traffic_allocation_percent, should be 100.0.",
    )


# --- Reporting and Analytics ---


class VariantConversionModel(BaseModel):
    """Conversion record for one variant: how many users saw it and how many converted."""

    variant: str = Field(..., min_length=1)
    user_count: int = Field(..., ge=0)
    conversion_count: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_conversions(self):
        if self.conversion_count > self.user_count:
            raise ValueError("conversion_count cannot exceed user_count")
        return self


class ExperimentAnalyzeRequestModel(BaseModel):
    variants: List[VariantConversionModel] = Field(..., min_length=2)


class ConfidenceIntervalModel(BaseModel):
    lower: float
    upper: float


class VariantAnalysisModel(BaseModel):
    variant: str
    is_control: bool
    user_count: int
    conversion_count: int
    conversion_rate: float
    confidence_interval: ConfidenceIntervalModel
    lift: Optional[float] = None
    z_score: Optional[float] = None
    p_value: Optional[float] = None
    is_significant: bool = False
    exceeds_lift_threshold: bool = False
    sufficient_sample: bool


class ChiSquareModel(BaseModel):
    chi_square: float
    p_value: float
    degrees_of_freedom: int


class ExperimentAnalysisModel(BaseModel):
    experiment_id: str
    experiment_name: Optional[str] = None
    goal_event: Optional[str] = None
    confidence_level: float
    lift_threshold: float
    control: str
    winner: Optional[str] = None
    is_significant: bool
    total_users: int
    total_conversions: int
    overall_conversion_rate: float
    variants: List[VariantAnalysisModel]
    chi_square: Optional[ChiSquareModel] = None


class VariantTimeSeriesPointModel(BaseModel):
    period: str
    assignments: int
    conversions: int
    conversion_rate: float
    cumulative_assignments: int
    cumulative_conversions: int
    cumulative_conversion_rate: float


class VariantTimeSeriesModel(BaseModel):
    variant: str
    data_points: List[VariantTimeSeriesPointModel]


class ExperimentTimeSeriesModel(BaseModel):
    experiment_id: str
    granularity: str
    variants: List[VariantTimeSeriesModel]


class RecommendationModel(BaseModel):
    experiment_id: str
    action: Literal["implement_winner", "continue", "no_clear_winner"]
    confidence: Literal["low", "medium", "high"]
    recommended_variant: Optional[str] = None
    days_running: int
    messages: List[str]
