"""Workout plan API router."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from core.auth import Identity, get_current_identity, require_active_subscription
from core.exceptions import ConflictError
from core.logger import get_logger
from core.rate_limiter import ai_operation_limiter, enforce, plan_generation_limiter
from database.deps import get_db_read, get_db_write
from database.stores import WorkoutPlanStore
from schemas.workout_schema import (
    GenerateWorkoutRequest,
    WorkoutPlanList,
    WorkoutPlanResponse,
    WorkoutPlanResult,
)
from services.workout_generation import WorkoutGenerationService, end_date_for

logger = get_logger("api.workouts")
router = APIRouter(prefix="/api/workouts", tags=["workouts"])

generation_guards = [Depends(enforce(plan_generation_limiter)), Depends(enforce(ai_operation_limiter))]


def get_workout_service(request: Request) -> WorkoutGenerationService:
    return request.app.state.workout_service


@router.get("", response_model=WorkoutPlanList)
def list_workout_plans(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_read),
):
    plans = WorkoutPlanStore(db).list_for_user(identity.user_id, start_date, end_date, limit)
    return WorkoutPlanList(
        workout_plans=[WorkoutPlanResponse.model_validate(p) for p in plans],
        count=len(plans),
    )


@router.get("/{plan_id}", response_model=WorkoutPlanResponse)
def get_workout_plan(
    plan_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_read),
):
    return WorkoutPlanStore(db).get_for_user(identity.user_id, plan_id)


@router.post("/generate-cycle", response_model=WorkoutPlanResult, status_code=201, dependencies=generation_guards)
@router.post("/generate", response_model=WorkoutPlanResult, status_code=201, dependencies=generation_guards)
def generate_workout_cycle(
    payload: GenerateWorkoutRequest,
    identity: Identity = Depends(require_active_subscription),
    db: Session = Depends(get_db_write),
    service: WorkoutGenerationService = Depends(get_workout_service),
):
    """Generate and store a workout cycle starting on `payload.start_date`.

    The overlap check runs before the AI call so a rejected request costs
    no completion tokens.

    Raises:
        ConflictError: If the cycle would overlap an active one.
        IncompleteProfileError: If age, weight or height is missing.
    """
    end = end_date_for(payload.start_date, payload.duration_weeks)
    overlap = WorkoutPlanStore(db).find_overlapping(identity.user_id, payload.start_date, end)
    if overlap is not None:
        raise ConflictError("Workout plan overlaps existing cycle", existing_id=overlap.id)

    cycle = service.generate(
        db,
        identity.user_id,
        payload.start_date,
        payload.duration_weeks,
        days_per_week=payload.days_per_week,
        goal=payload.goal,
        experience_level=payload.experience_level,
        preferences=payload.preferences,
    )
    saved = service.save_workout_plan(db, identity.user_id, payload.start_date, cycle)
    logger.info("Workout cycle %s generated for user=%s", saved.id, identity.user_id)
    return WorkoutPlanResult(
        workout_plan=WorkoutPlanResponse.model_validate(saved),
        message="Workout cycle generated successfully",
    )


@router.delete("/{plan_id}")
def delete_workout_plan(
    plan_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_write),
):
    WorkoutPlanStore(db).delete_for_user(identity.user_id, plan_id)
    logger.info("Workout plan %s deleted by user=%s", plan_id, identity.user_id)
    return {"message": "Workout plan deleted successfully"}
