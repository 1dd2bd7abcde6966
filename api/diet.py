"""Diet plan API router.

Lists, fetches and deletes the caller's diet plans, and generates new ones
through the AI diet pipeline. Generation requires an active subscription
and passes both generation rate limiters.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from core.auth import Identity, get_current_identity, require_active_subscription
from core.exceptions import ConflictError
from core.logger import get_logger
from core.rate_limiter import ai_operation_limiter, enforce, plan_generation_limiter
from database.deps import get_db_read, get_db_write
from database.stores import DietPlanStore
from schemas.diet_schema import (
    DietPlanList,
    DietPlanResponse,
    DietPlanResult,
    GenerateDailyDietRequest,
    GenerateDietRequest,
)
from services.diet_generation import DietGenerationService

logger = get_logger("api.diet")
router = APIRouter(prefix="/api/diet", tags=["diet"])

generation_guards = [Depends(enforce(plan_generation_limiter)), Depends(enforce(ai_operation_limiter))]


def get_diet_service(request: Request) -> DietGenerationService:
    return request.app.state.diet_service


@router.get("", response_model=DietPlanList)
def list_diet_plans(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(30, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_read),
):
    """Return the caller's diet plans, newest first."""
    plans = DietPlanStore(db).list_for_user(identity.user_id, start_date, end_date, limit)
    return DietPlanList(diet_plans=[DietPlanResponse.model_validate(p) for p in plans], count=len(plans))


@router.get("/{plan_id}", response_model=DietPlanResponse)
def get_diet_plan(
    plan_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_read),
):
    return DietPlanStore(db).get_for_user(identity.user_id, plan_id)


@router.post("/generate", response_model=DietPlanResult, status_code=201, dependencies=generation_guards)
def generate_diet_plan(
    payload: GenerateDietRequest,
    identity: Identity = Depends(require_active_subscription),
    db: Session = Depends(get_db_write),
    service: DietGenerationService = Depends(get_diet_service),
):
    """Generate and store a diet plan for `payload.date`.

    Raises:
        ConflictError: If the caller already has a plan for that date.
        IncompleteProfileError: If age, weight or height is missing.
        UpstreamError: If the AI service is unavailable.
    """
    existing = DietPlanStore(db).find_plan(identity.user_id, payload.date)
    if existing is not None:
        raise ConflictError("Diet plan already exists for this date", existing_id=existing.id)

    logger.info("Generating diet plan for user=%s date=%s", identity.user_id, payload.date)
    plan = service.generate(db, identity.user_id, payload.date, payload.previous_day_progress_id)
    saved = service.save_diet_plan(
        db, identity.user_id, payload.date, plan, "ai", payload.previous_day_progress_id
    )
    logger.info("Diet plan generated successfully: %s", saved.id)
    return DietPlanResult(
        diet_plan=DietPlanResponse.model_validate(saved),
        message="Diet plan generated successfully",
    )


@router.post("/generate-daily", response_model=DietPlanResult, dependencies=generation_guards)
def generate_daily_diet_plan(
    response: Response,
    payload: Optional[GenerateDailyDietRequest] = None,
    identity: Identity = Depends(require_active_subscription),
    db: Session = Depends(get_db_write),
    service: DietGenerationService = Depends(get_diet_service),
):
    """Generate today's diet plan, or return it if it already exists."""
    today = date.today()
    previous_id = payload.previous_day_progress_id if payload else None

    existing = DietPlanStore(db).find_plan(identity.user_id, today)
    if existing is not None:
        return DietPlanResult(
            diet_plan=DietPlanResponse.model_validate(existing),
            message="Diet plan already exists for today",
            already_exists=True,
        )

    logger.info("Generating daily diet plan for user=%s", identity.user_id)
    plan = service.generate(db, identity.user_id, today, previous_id)
    saved = service.save_diet_plan(db, identity.user_id, today, plan, "auto-daily", previous_id)
    response.status_code = 201
    return DietPlanResult(
        diet_plan=DietPlanResponse.model_validate(saved),
        message="Daily diet plan generated successfully",
    )


@router.delete("/{plan_id}")
def delete_diet_plan(
    plan_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_write),
):
    DietPlanStore(db).delete_for_user(identity.user_id, plan_id)
    logger.info("Diet plan %s deleted by user=%s", plan_id, identity.user_id)
    return {"message": "Diet plan deleted successfully"}
