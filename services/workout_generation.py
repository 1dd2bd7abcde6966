"""Workout cycle generation pipeline."""

from datetime import date, timedelta
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from core.exceptions import IncompleteProfileError, InvalidStructureError
from core.logger import get_logger
from database import models
from database.stores import UserStore, WorkoutPlanStore
from schemas.user_schema import UserProfile
from schemas.workout_schema import AIWorkoutResponse, GeneratedWorkoutCycle
from services.completion_client import CompletionClient
from services.response_parsing import extract_json_object

logger = get_logger("services.workout_generation")

DEFAULT_DAYS_PER_WEEK = 4
DEFAULT_EXPERIENCE_LEVEL = "intermediate"


def end_date_for(start_date: date, duration_weeks: int) -> date:
    """Last day of a cycle: start + weeks*7 - 1 days."""
    return start_date + timedelta(days=duration_weeks * 7 - 1)


def _join(values: List[str], empty: str = "None") -> str:
    return ", ".join(values) if values else empty


class WorkoutGenerationService:
    """Generates and persists AI workout cycles."""

    def __init__(self, completion_client: CompletionClient):
        self.completion_client = completion_client

    def build_prompt(
        self,
        profile: UserProfile,
        duration_weeks: int,
        days_per_week: Optional[int] = None,
        goal: Optional[str] = None,
        experience_level: Optional[str] = None,
        preferences: Optional[str] = None,
    ) -> str:
        days = days_per_week or DEFAULT_DAYS_PER_WEEK
        goal = goal or profile.primary_goal
        prompt = f"""Generate a personalized {duration_weeks}-week workout cycle for the following user:

**User Profile:**
- Age: {profile.age} years
- Weight: {profile.weight} kg
- Height: {profile.height} cm
- Gender: {profile.gender or 'other'}
- Activity Level: {profile.activity_level or 'moderate'}
- Primary Goal: {goal}
- All Goals: {_join(profile.goals, 'maintenance')}
- Experience Level: {experience_level or DEFAULT_EXPERIENCE_LEVEL}

**Training Schedule:**
- Training days per week: EXACTLY {days} training days
- Duration: {duration_weeks} weeks

**Preferences:** {preferences or _join(profile.preferences)}
**Restrictions / Injuries:** {_join(profile.restrictions)}
"""
        if days_per_week is None:
            prompt += "- Use between 3 and 6 training days if the user's goals call for a different split\n"

        prompt += f"""
**Instructions:**
1. Create EXACTLY {days} training days, each with 4-8 exercises
2. Start every day with a short warm-up and finish with a cool-down
3. Specify sets, reps (a number or a range like "8-12") and rest in seconds
4. Match exercise selection and volume to the goal and experience level
5. Respect restrictions and avoid movements that could aggravate injuries
6. Add safety notes on form where relevant

**Response Format (JSON only, no additional text):**
{{
  "name": "Upper/Lower Strength Cycle",
  "durationWeeks": {duration_weeks},
  "days": [
    {{
      "day": "Day 1 - Upper Body",
      "exercises": [
        {{"name": "Bench Press", "sets": 4, "reps": "8-10", "rest": 90, "notes": "Keep shoulder blades retracted"}}
      ]
    }}
  ]
}}"""
        return prompt

    def parse_cycle(self, ai_response: str, duration_weeks: int) -> GeneratedWorkoutCycle:
        """Parse the AI JSON into a normalized cycle.

        Raises:
            ParseError: If no JSON object is present.
            InvalidStructureError: If `days` is missing or not a list.
        """
        data = extract_json_object(ai_response)
        if not isinstance(data.get("days"), list):
            raise InvalidStructureError("Invalid workout plan structure in AI response")
        try:
            parsed = AIWorkoutResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise InvalidStructureError(
                "Invalid workout plan structure in AI response",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )
        return GeneratedWorkoutCycle(name=parsed.name, duration_weeks=duration_weeks, days=parsed.days)

    def generate(
        self,
        db: Session,
        user_id: int,
        start_date: date,
        duration_weeks: int = 4,
        days_per_week: Optional[int] = None,
        goal: Optional[str] = None,
        experience_level: Optional[str] = None,
        preferences: Optional[str] = None,
    ) -> GeneratedWorkoutCycle:
        """Generate (but do not persist) a workout cycle starting on `start_date`.

        The overlap check against existing active cycles is the caller's job
        before generation; `save_workout_plan` enforces it again on insert.
        """
        profile = UserStore(db).find_profile(user_id)
        missing = profile.missing_fields()
        if missing:
            raise IncompleteProfileError(missing)

        prompt = self.build_prompt(profile, duration_weeks, days_per_week, goal, experience_level, preferences)
        logger.info("Generating %s-week workout cycle for user=%s from %s", duration_weeks, user_id, start_date)
        ai_response = self.completion_client.generate_workout_plan(prompt)

        cycle = self.parse_cycle(ai_response, duration_weeks)
        logger.info("Generated workout cycle for user=%s: %s days", user_id, len(cycle.days))
        return cycle

    def save_workout_plan(
        self,
        db: Session,
        user_id: int,
        start_date: date,
        cycle: GeneratedWorkoutCycle,
    ) -> models.WorkoutPlan:
        """Persist a cycle as an active plan.

        Raises:
            ConflictError: If it overlaps an active cycle of the same user.
        """
        record = models.WorkoutPlan(
            user_id=user_id,
            name=cycle.name,
            duration_weeks=cycle.duration_weeks,
            start_date=start_date,
            end_date=end_date_for(start_date, cycle.duration_weeks),
            status="active",
            days=[d.model_dump() for d in cycle.days],
        )
        return WorkoutPlanStore(db).insert_plan(record)
