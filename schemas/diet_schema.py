"""Schemas for diet generation, AI response parsing and diet plan responses."""

from datetime import date as Date, datetime
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import List, Optional


class MacroBreakdown(BaseModel):
    """Protein/carbs/fats in grams."""

    protein: float = 0
    carbs: float = 0
    fats: float = 0


class FoodItem(BaseModel):
    """One food in a meal with estimator-validated nutrition."""

    name: str
    portion: str
    calories: float
    protein: float
    carbs: float
    fats: float


class Meal(BaseModel):
    """A meal whose totals are always derived from its foods."""

    name: str
    time: str = ""
    foods: List[FoodItem] = Field(default_factory=list)

    @computed_field
    @property
    def total_calories(self) -> float:
        return sum(f.calories for f in self.foods)

    @computed_field
    @property
    def macros(self) -> MacroBreakdown:
        return MacroBreakdown(
            protein=sum(f.protein for f in self.foods),
            carbs=sum(f.carbs for f in self.foods),
            fats=sum(f.fats for f in self.foods),
        )


class GeneratedDietPlan(BaseModel):
    """Diet plan produced by the pipeline, before persistence.

    `target_calories`/`target_macros` are the computed nutrition targets;
    `daily_calories`/`macros` are the sums of the validated meals.
    """

    target_calories: int
    target_macros: MacroBreakdown
    meals: List[Meal]

    @computed_field
    @property
    def daily_calories(self) -> float:
        return sum(m.total_calories for m in self.meals)

    @computed_field
    @property
    def macros(self) -> MacroBreakdown:
        meal_macros = [m.macros for m in self.meals]
        return MacroBreakdown(
            protein=sum(m.protein for m in meal_macros),
            carbs=sum(m.carbs for m in meal_macros),
            fats=sum(m.fats for m in meal_macros),
        )


class PreviousDayProgress(BaseModel):
    """Prior-day context folded into the diet prompt."""

    calories_consumed: float
    meals_logged: int
    adherence_score: int


# AI response boundary: loosely typed JSON is coerced here exactly once.

def _as_text(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class AIFood(BaseModel):
    name: str = Field(..., min_length=1)
    portion: str = Field(..., min_length=1)

    coerce_text = field_validator("name", "portion", mode="before")(_as_text)


class AIMeal(BaseModel):
    name: Optional[str] = None
    time: str = ""
    foods: List[AIFood] = Field(default_factory=list)

    coerce_text = field_validator("name", mode="before")(_as_text)

    @field_validator("time", mode="before")
    @classmethod
    def _time_text(cls, value):
        return "" if value is None else _as_text(value)

    @field_validator("foods", mode="before")
    @classmethod
    def _foods_list(cls, value):
        return [] if value is None else value


class AIDietResponse(BaseModel):
    meals: List[AIMeal] = Field(..., min_length=1)


# Request / response models

class GenerateDietRequest(BaseModel):
    """Payload for generating a diet plan on a given date."""

    date: Date = Field(..., examples=["2025-01-15"], description="Plan date (YYYY-MM-DD)")
    previous_day_progress_id: Optional[int] = Field(None, examples=[12], description="Progress log used as context")


class GenerateDailyDietRequest(BaseModel):
    """Payload for generating today's diet plan."""

    previous_day_progress_id: Optional[int] = Field(None, examples=[12])


class DietPlanResponse(BaseModel):
    """Persisted diet plan as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    date: Date
    daily_calories: float
    protein: float
    carbs: float
    fats: float
    target_calories: Optional[float] = None
    target_protein: Optional[float] = None
    target_carbs: Optional[float] = None
    target_fats: Optional[float] = None
    meals: List[Meal]
    generated_from: str
    previous_day_progress_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class DietPlanResult(BaseModel):
    diet_plan: DietPlanResponse
    message: str
    already_exists: bool = False


class DietPlanList(BaseModel):
    diet_plans: List[DietPlanResponse]
    count: int
