from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AssignmentModel(BaseModel):
    """Data model for a persistent user assignment record."""

    experiment_id: str
    user_id: str
    variant_id: str
    variant_name: str = Field(..., description="The name of the variant the user was assigned.")
    assignment_timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
