"""Manual trigger surface for the plan scheduler.

Lets an external cron dispatcher (or an operator) run each maintenance
sweep on demand and inspect scheduler state. Sweeps run as background
tasks; the request returns as soon as the sweep is queued. In production a
shared secret is required, sent as `X-Cron-Secret` or `?secret=`.
"""

import hmac
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request

from core import config
from core.exceptions import ConfigurationError, UnauthorizedError
from core.logger import get_logger
from schemas.scheduler_schema import SchedulerStatus, TriggerResponse
from services.plan_scheduler import PlanScheduler

logger = get_logger("api.cron")


def verify_cron_request(
    secret: Optional[str] = Query(None),
    x_cron_secret: Optional[str] = Header(None),
) -> None:
    """Require the cron secret in production; allow everything otherwise."""
    if not config.is_production():
        return
    expected = config.CRON_SECRET
    if not expected:
        logger.error("CRON_SECRET not configured in environment")
        raise ConfigurationError("Server misconfiguration", config_key="CRON_SECRET")
    provided = secret or x_cron_secret or ""
    if not hmac.compare_digest(provided, expected):
        logger.error("Invalid cron secret provided")
        raise UnauthorizedError("Unauthorized")


router = APIRouter(prefix="/api/cron", tags=["cron"])


def get_scheduler(request: Request) -> PlanScheduler:
    return request.app.state.scheduler


def _run_sweep(name: str, sweep: Callable[[], dict]) -> None:
    try:
        summary = sweep()
        logger.info("%s completed: %s", name, summary)
    except Exception:
        logger.exception("%s failed", name)


def _queue(background_tasks: BackgroundTasks, name: str, sweep: Callable[[], dict]) -> TriggerResponse:
    logger.info("%s triggered", name)
    background_tasks.add_task(_run_sweep, name, sweep)
    return TriggerResponse(message=f"{name} started", timestamp=datetime.utcnow().isoformat())


@router.post("/subscription-update", response_model=TriggerResponse, status_code=202,
             dependencies=[Depends(verify_cron_request)])
def trigger_subscription_update(background_tasks: BackgroundTasks, scheduler: PlanScheduler = Depends(get_scheduler)):
    return _queue(background_tasks, "Subscription update", scheduler.trigger_subscription_update)


@router.post("/daily-diet", response_model=TriggerResponse, status_code=202,
             dependencies=[Depends(verify_cron_request)])
def trigger_daily_diet(background_tasks: BackgroundTasks, scheduler: PlanScheduler = Depends(get_scheduler)):
    return _queue(background_tasks, "Daily diet generation", scheduler.trigger_daily_diet_generation)


@router.post("/workout-expiry", response_model=TriggerResponse, status_code=202,
             dependencies=[Depends(verify_cron_request)])
def trigger_workout_expiry(background_tasks: BackgroundTasks, scheduler: PlanScheduler = Depends(get_scheduler)):
    return _queue(background_tasks, "Workout expiry check", scheduler.trigger_workout_expiry_check)


@router.get("/status", response_model=SchedulerStatus, dependencies=[Depends(verify_cron_request)])
def scheduler_status(scheduler: PlanScheduler = Depends(get_scheduler)):
    return scheduler.get_status()


@router.get("/health")
def cron_health():
    return {
        "ok": True,
        "message": "Cron endpoints are healthy",
        "endpoints": [
            "POST /api/cron/subscription-update",
            "POST /api/cron/daily-diet",
            "POST /api/cron/workout-expiry",
        ],
    }
