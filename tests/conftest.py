"""Shared fixtures: in-memory database, seed helpers and a fake LLM client."""

import itertools
import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db, models

# Model-reported numbers are deliberately wrong; the estimator replaces them.
DIET_RESPONSE = "Here is the plan:\n```json\n" + json.dumps({
    "meals": [
        {
            "name": "Breakfast",
            "time": "08:00",
            "foods": [
                {"name": "Oatmeal", "portion": "100g", "calories": 9999, "protein": 1, "carbs": 1, "fats": 1},
                {"name": "Banana", "portion": "120g", "calories": 9999, "protein": 1, "carbs": 1, "fats": 1},
            ],
        },
        {
            "name": "Lunch",
            "time": "12:30",
            "foods": [
                {"name": "Grilled Chicken Breast", "portion": "200g", "calories": 1},
                {"name": "Brown Rice", "portion": "1 cup", "calories": 1},
            ],
        },
    ]
}) + "\n```"

# Oatmeal 389/17/66/7, banana 107/1/28/0, chicken breast 330/62/0/7, rice 312/6/67/1
DIET_RESPONSE_TOTALS = {"calories": 1138, "protein": 86, "carbs": 161, "fats": 15}

WORKOUT_RESPONSE = json.dumps({
    "name": "Upper/Lower Split",
    "durationWeeks": 4,
    "days": [
        {
            "day": "Day 1 - Upper",
            "exercises": [
                {"name": "Bench Press", "sets": 4, "reps": "8-10", "rest": 90, "notes": "Controlled descent"},
                {"name": "Barbell Row", "sets": 4, "reps": "8-10", "rest": 90},
            ],
        },
        {
            "day": "Day 2 - Lower",
            "exercises": [
                {"name": "Back Squat", "sets": 5, "reps": "5", "rest": 150},
            ],
        },
    ],
})


class FakeCompletionClient:
    """Stands in for `CompletionClient`; records prompts, returns canned text.

    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, diet_response=DIET_RESPONSE, workout_response=WORKOUT_RESPONSE):
        self.diet_response = diet_response
        self.workout_response = workout_response
        self.diet_prompts = []
        self.workout_prompts = []

    def _reply(self, response):
        if isinstance(response, Exception):
            raise response
        return response

    def generate_diet_plan(self, prompt):
        self.diet_prompts.append(prompt)
        return self._reply(self.diet_response)

    def generate_workout_plan(self, prompt):
        self.workout_prompts.append(prompt)
        return self._reply(self.workout_response)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def make_user(db):
    """Factory creating users with a complete profile and live subscription."""
    counter = itertools.count(1)

    def _make_user(**overrides):
        n = next(counter)
        fields = {
            "email": f"user{n}@example.com",
            "name": f"User {n}",
            "role": "user",
            "age": 30,
            "weight": 80.0,
            "height": 180.0,
            "gender": "male",
            "activity_level": "moderate",
            "goals": ["muscle_gain"],
            "preferences": [],
            "restrictions": [],
            "subscription_status": "active",
            "subscription_end_date": datetime.utcnow() + timedelta(days=30),
        }
        fields.update(overrides)
        user = models.User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user
