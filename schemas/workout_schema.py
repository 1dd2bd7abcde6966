"""Schemas for workout cycle generation and workout plan responses."""

import math
from datetime import date as Date, datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, List, Optional


class Exercise(BaseModel):
    name: str
    sets: int
    reps: str = Field(..., description="Rep count or range, e.g. '8-12'")
    rest: int = Field(..., description="Rest between sets in seconds")
    notes: Optional[str] = None


class WorkoutDay(BaseModel):
    day: str
    exercises: List[Exercise] = Field(default_factory=list)


class GeneratedWorkoutCycle(BaseModel):
    """Workout cycle produced by the pipeline, before persistence."""

    name: str
    duration_weeks: int
    days: List[WorkoutDay]


# AI response boundary

def _number_or(value: Any, default: int) -> int:
    if not value or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return int(number) if math.isfinite(number) else default


class AIWorkoutResponse(BaseModel):
    """Loose AI JSON coerced into a `GeneratedWorkoutCycle` shape.

    Defaults: day label `Day {n}`, exercise name `Exercise`, 3 sets,
    reps `8-12`, 60 s rest, notes dropped when empty.
    """

    name: str = "Workout Cycle"
    duration_weeks: Optional[int] = None
    days: List[WorkoutDay]

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data):
        if not isinstance(data, dict):
            return data
        days = []
        for idx, raw_day in enumerate(data.get("days") or []):
            raw_day = raw_day if isinstance(raw_day, dict) else {}
            exercises = []
            for raw in raw_day.get("exercises") or []:
                raw = raw if isinstance(raw, dict) else {}
                exercises.append({
                    "name": str(raw.get("name") or "Exercise"),
                    "sets": _number_or(raw.get("sets"), 3),
                    "reps": str(raw.get("reps") or "8-12"),
                    "rest": _number_or(raw.get("rest"), 60),
                    "notes": str(raw["notes"]) if raw.get("notes") else None,
                })
            days.append({"day": str(raw_day.get("day") or f"Day {idx + 1}"), "exercises": exercises})

        weeks = data.get("durationWeeks", data.get("duration_weeks"))
        return {
            "name": str(data.get("name") or "Workout Cycle"),
            "duration_weeks": _number_or(weeks, 0) or None,
            "days": days,
        }


# Request / response models

class GenerateWorkoutRequest(BaseModel):
    """Payload for generating a workout cycle."""

    start_date: Date = Field(..., examples=["2025-01-06"])
    duration_weeks: int = Field(4, ge=1, le=16, examples=[4])
    days_per_week: Optional[int] = Field(None, ge=1, le=7, examples=[4])
    goal: Optional[str] = Field(None, examples=["muscle_gain"], description="Overrides the profile's primary goal")
    experience_level: Optional[str] = Field(None, examples=["intermediate"])
    preferences: Optional[str] = Field(None, examples=["dumbbells only"])


class WorkoutPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    duration_weeks: int
    start_date: Date
    end_date: Date
    status: str
    days: List[WorkoutDay]
    created_at: Optional[datetime] = None


class WorkoutPlanResult(BaseModel):
    workout_plan: WorkoutPlanResponse
    message: str


class WorkoutPlanList(BaseModel):
    workout_plans: List[WorkoutPlanResponse]
    count: int
