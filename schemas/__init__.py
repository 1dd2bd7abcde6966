"""Pydantic schema package for request, response and AI-parsing models."""

from .user_schema import UserProfile
from .diet_schema import (
    FoodItem,
    Meal,
    MacroBreakdown,
    GeneratedDietPlan,
    GenerateDietRequest,
    GenerateDailyDietRequest,
    DietPlanResponse,
)
from .workout_schema import (
    Exercise,
    WorkoutDay,
    GeneratedWorkoutCycle,
    GenerateWorkoutRequest,
    WorkoutPlanResponse,
)
from .scheduler_schema import SchedulerStatus, TriggerResponse

__all__ = [
    "UserProfile",
    "FoodItem",
    "Meal",
    "MacroBreakdown",
    "GeneratedDietPlan",
    "GenerateDietRequest",
    "GenerateDailyDietRequest",
    "DietPlanResponse",
    "Exercise",
    "WorkoutDay",
    "GeneratedWorkoutCycle",
    "GenerateWorkoutRequest",
    "WorkoutPlanResponse",
    "SchedulerStatus",
    "TriggerResponse",
]
