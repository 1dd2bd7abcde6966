"""Tests for the workout cycle generation pipeline."""
import json
from datetime import date

import pytest

from conftest import FakeCompletionClient
from core.exceptions import ConflictError, IncompleteProfileError, InvalidStructureError, ParseError
from services.workout_generation import WorkoutGenerationService, end_date_for

START = date(2025, 1, 6)


def test_end_date_is_inclusive_of_last_day():
    assert end_date_for(START, 4) == date(2025, 2, 2)
    assert end_date_for(START, 1) == date(2025, 1, 12)


def test_generate_builds_prompt_and_keeps_requested_duration(db, make_user, fake_client):
    user = make_user(restrictions=["knee injury"])
    service = WorkoutGenerationService(fake_client)

    cycle = service.generate(db, user.id, START, 6, days_per_week=5, experience_level="beginner")

    assert cycle.name == "Upper/Lower Split"
    assert cycle.duration_weeks == 6
    assert [d.day for d in cycle.days] == ["Day 1 - Upper", "Day 2 - Lower"]
    assert cycle.days[0].exercises[0].rest == 90

    prompt = fake_client.workout_prompts[0]
    assert "EXACTLY 5 training days" in prompt
    assert "Experience Level: beginner" in prompt
    assert "knee injury" in prompt
    assert "warm-up" in prompt


def test_prompt_defaults(db, make_user, fake_client):
    user = make_user(goals=[])
    WorkoutGenerationService(fake_client).generate(db, user.id, START)

    prompt = fake_client.workout_prompts[0]
    assert "EXACTLY 4 training days" in prompt
    assert "Experience Level: intermediate" in prompt
    assert "Primary Goal: maintenance" in prompt


def test_parse_cycle_applies_defaults():
    service = WorkoutGenerationService(FakeCompletionClient())
    text = json.dumps({
        "days": [
            {"day": "Push", "exercises": [{"name": "Dips", "sets": "4", "reps": 10, "rest": "abc", "notes": ""}]},
            {"exercises": [{}]},
        ]
    })

    cycle = service.parse_cycle(text, 4)

    assert cycle.name == "Workout Cycle"
    dips = cycle.days[0].exercises[0]
    assert (dips.sets, dips.reps, dips.rest, dips.notes) == (4, "10", 60, None)
    assert cycle.days[1].day == "Day 2"
    blank = cycle.days[1].exercises[0]
    assert (blank.name, blank.sets, blank.reps, blank.rest) == ("Exercise", 3, "8-12", 60)


@pytest.mark.parametrize("body", [{"name": "No days"}, {"days": "Monday"}])
def test_missing_days_array_is_invalid_structure(body):
    service = WorkoutGenerationService(FakeCompletionClient())
    with pytest.raises(InvalidStructureError):
        service.parse_cycle(json.dumps(body), 4)


def test_non_json_response_raises_parse_error(db, make_user):
    user = make_user()
    client = FakeCompletionClient(workout_response="Rest day!")
    with pytest.raises(ParseError):
        WorkoutGenerationService(client).generate(db, user.id, START)


def test_incomplete_profile_is_rejected(db, make_user, fake_client):
    user = make_user(age=None)
    with pytest.raises(IncompleteProfileError):
        WorkoutGenerationService(fake_client).generate(db, user.id, START)
    assert fake_client.workout_prompts == []


def test_save_rejects_overlap_but_allows_adjacent_cycles(db, make_user, fake_client):
    user = make_user()
    service = WorkoutGenerationService(fake_client)
    cycle = service.generate(db, user.id, START, 4)

    first = service.save_workout_plan(db, user.id, START, cycle)
    assert (first.start_date, first.end_date, first.status) == (START, date(2025, 2, 2), "active")

    with pytest.raises(ConflictError) as exc_info:
        service.save_workout_plan(db, user.id, date(2025, 2, 2), cycle)
    assert exc_info.value.details["existing_id"] == first.id

    adjacent = service.save_workout_plan(db, user.id, date(2025, 2, 3), cycle)
    assert adjacent.end_date == date(2025, 3, 2)
