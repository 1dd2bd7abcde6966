"""Tests for the diet, workout and cron routers."""
from datetime import date, timedelta

import pytest
from fastapi import FastAPI, Response
from fastapi.testclient import TestClient

from api.cron import router as cron_router, verify_cron_request
from api.diet import (
    delete_diet_plan,
    generate_daily_diet_plan,
    generate_diet_plan,
    get_diet_plan,
    list_diet_plans,
    router as diet_router,
)
from api.workouts import generate_workout_cycle, list_workout_plans
from conftest import DIET_RESPONSE_TOTALS
from core import config
from core.auth import Identity, create_access_token
from core.error_handlers import register_exception_handlers
from core.exceptions import ConfigurationError, ConflictError, NotFoundError, UnauthorizedError
from core.rate_limiter import ai_operation_limiter, plan_generation_limiter
from database.deps import get_db_read, get_db_write
from schemas.diet_schema import GenerateDailyDietRequest, GenerateDietRequest
from schemas.workout_schema import GenerateWorkoutRequest
from services.diet_generation import DietGenerationService
from services.plan_scheduler import PlanScheduler
from services.workout_generation import WorkoutGenerationService


@pytest.fixture(autouse=True)
def reset_limiters():
    plan_generation_limiter.reset()
    ai_operation_limiter.reset()
    yield
    plan_generation_limiter.reset()
    ai_operation_limiter.reset()


def test_generate_diet_plan_then_conflict(db, make_user, fake_client):
    user = make_user()
    identity = Identity(user_id=user.id)
    service = DietGenerationService(fake_client)
    payload = GenerateDietRequest(date=date(2025, 3, 1))

    result = generate_diet_plan(payload, identity, db, service)

    assert result.message == "Diet plan generated successfully"
    assert result.diet_plan.generated_from == "ai"
    assert result.diet_plan.daily_calories == DIET_RESPONSE_TOTALS["calories"]
    assert result.diet_plan.meals[1].foods[0].calories == 330

    with pytest.raises(ConflictError) as exc_info:
        generate_diet_plan(payload, identity, db, service)
    assert exc_info.value.details["existing_id"] == result.diet_plan.id
    assert len(fake_client.diet_prompts) == 1


def test_generate_daily_returns_existing_plan(db, make_user, fake_client):
    user = make_user()
    identity = Identity(user_id=user.id)
    service = DietGenerationService(fake_client)

    created_response = Response()
    created = generate_daily_diet_plan(created_response, GenerateDailyDietRequest(), identity, db, service)
    assert created_response.status_code == 201
    assert created.already_exists is False
    assert created.diet_plan.generated_from == "auto-daily"
    assert created.diet_plan.date == date.today()

    existing = generate_daily_diet_plan(Response(), None, identity, db, service)
    assert existing.already_exists is True
    assert existing.diet_plan.id == created.diet_plan.id
    assert len(fake_client.diet_prompts) == 1


def test_diet_plan_read_and_delete(db, make_user, fake_client):
    owner, other = make_user(), make_user()
    service = DietGenerationService(fake_client)
    plan = generate_diet_plan(GenerateDietRequest(date=date(2025, 3, 1)), Identity(user_id=owner.id), db, service)
    plan_id = plan.diet_plan.id

    listing = list_diet_plans(None, None, 30, Identity(user_id=owner.id), db)
    assert listing.count == 1
    assert get_diet_plan(plan_id, Identity(user_id=owner.id), db).id == plan_id
    with pytest.raises(NotFoundError):
        get_diet_plan(plan_id, Identity(user_id=other.id), db)

    assert delete_diet_plan(plan_id, Identity(user_id=owner.id), db) == {"message": "Diet plan deleted successfully"}
    assert list_diet_plans(None, None, 30, Identity(user_id=owner.id), db).count == 0


def test_workout_overlap_is_checked_before_calling_llm(db, make_user, fake_client):
    user = make_user()
    identity = Identity(user_id=user.id)
    service = WorkoutGenerationService(fake_client)

    result = generate_workout_cycle(GenerateWorkoutRequest(start_date=date(2025, 3, 3)), identity, db, service)
    assert result.workout_plan.end_date == date(2025, 3, 30)
    assert result.workout_plan.days[0].exercises[0].name == "Bench Press"

    with pytest.raises(ConflictError):
        generate_workout_cycle(
            GenerateWorkoutRequest(start_date=date(2025, 3, 17), duration_weeks=2), identity, db, service
        )
    assert len(fake_client.workout_prompts) == 1
    assert list_workout_plans(None, None, 20, identity, db).count == 1


def test_cron_secret_only_enforced_in_production(monkeypatch):
    verify_cron_request(secret=None, x_cron_secret=None)

    monkeypatch.setattr(config, "APP_ENV", "production")
    monkeypatch.setattr(config, "CRON_SECRET", None)
    with pytest.raises(ConfigurationError):
        verify_cron_request(secret="anything", x_cron_secret=None)

    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")
    with pytest.raises(UnauthorizedError):
        verify_cron_request(secret="wrong", x_cron_secret=None)
    verify_cron_request(secret=None, x_cron_secret="s3cret")
    verify_cron_request(secret="s3cret", x_cron_secret=None)


@pytest.fixture
def app(session_factory, fake_client):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(diet_router)
    app.include_router(cron_router)
    app.state.diet_service = DietGenerationService(fake_client)
    app.state.scheduler = PlanScheduler(session_factory, app.state.diet_service, WorkoutGenerationService(fake_client))

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_read] = override_db
    app.dependency_overrides[get_db_write] = override_db
    return app


def test_generation_endpoint_is_rate_limited(app, make_user):
    user = make_user()
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    client = TestClient(app)

    for offset in range(2):
        day = (date(2025, 4, 1) + timedelta(days=offset)).isoformat()
        assert client.post("/api/diet/generate", json={"date": day}, headers=headers).status_code == 201

    response = client.post("/api/diet/generate", json={"date": "2025-04-03"}, headers=headers)
    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert int(response.headers["Retry-After"]) > 0


def test_generation_requires_token_and_subscription(app, make_user):
    client = TestClient(app)
    response = client.post("/api/diet/generate", json={"date": "2025-04-01"})
    assert response.status_code == 401

    lapsed = make_user(subscription_end_date=None)
    headers = {"Authorization": f"Bearer {create_access_token(lapsed.id)}"}
    response = client.post("/api/diet/generate", json={"date": "2025-04-01"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "SUBSCRIPTION_REQUIRED"


def test_incomplete_profile_maps_to_400(app, make_user):
    user = make_user(age=None)
    headers = {"Authorization": f"Bearer {create_access_token(user.id)}"}
    response = TestClient(app).post("/api/diet/generate", json={"date": "2025-04-01"}, headers=headers)
    assert response.status_code == 400
    body = response.json()["error"]
    assert body["code"] == "INCOMPLETE_PROFILE"
    assert body["details"]["missing_fields"] == ["age"]


def test_cron_trigger_runs_sweep_in_background(app, make_user):
    make_user()
    client = TestClient(app)

    response = client.post("/api/cron/daily-diet")
    assert response.status_code == 202
    assert response.json()["ok"] is True

    status = client.get("/api/cron/status").json()
    assert status["schedules"]["daily_diet"]["execution_count"] == 1
    assert status["is_running"] is False
    assert client.get("/api/cron/health").json()["ok"] is True


def test_cron_rejects_bad_secret_in_production(app, monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "production")
    monkeypatch.setattr(config, "CRON_SECRET", "s3cret")
    client = TestClient(app)

    response = client.post("/api/cron/subscription-update", headers={"X-Cron-Secret": "nope"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"

    response = client.post("/api/cron/subscription-update?secret=s3cret")
    assert response.status_code == 202
