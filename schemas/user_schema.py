"""Schemas for the user profile consumed by the generation pipelines."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

REQUIRED_BIOMETRICS = ("age", "weight", "height")


class UserProfile(BaseModel):
    """Read-only view of a user's profile.

    Missing gender, activity level and goals are defaulted when the
    pipelines build their context; age, weight and height are never
    defaulted and gate generation instead.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    user_id: int = Field(..., validation_alias="id")
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "user"
    age: Optional[int] = None
    weight: Optional[float] = Field(None, description="Weight in kilograms")
    height: Optional[float] = Field(None, description="Height in centimeters")
    gender: Optional[str] = None
    activity_level: Optional[str] = Field(None, description="sedentary, light, moderate, active, very_active")
    goals: List[str] = Field(default_factory=list, description="Ordered goals; the first is the primary goal")
    preferences: List[str] = Field(default_factory=list)
    restrictions: List[str] = Field(default_factory=list)
    timezone: str = "UTC"
    subscription_status: Optional[str] = None
    subscription_end_date: Optional[datetime] = None

    @field_validator("goals", "preferences", "restrictions", mode="before")
    @classmethod
    def _coerce_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)

    def missing_fields(self) -> List[str]:
        """Return the required biometrics that are absent or non-positive."""
        return [f for f in REQUIRED_BIOMETRICS if getattr(self, f) is None or getattr(self, f) <= 0]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def primary_goal(self) -> str:
        return self.goals[0] if self.goals else "maintenance"
