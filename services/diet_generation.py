"""Diet generation pipeline.

Computes nutrition targets from a profile, asks the LLM for a day of meals,
then rebuilds every food item's nutrition with the local estimator so the
plan's numbers never come from the model. Steps run strictly in order and
nothing is persisted unless the whole pipeline succeeds.
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from core.exceptions import IncompleteProfileError, InvalidStructureError, ValidationError
from core.logger import get_logger
from database import models
from database.stores import DietPlanStore, ProgressLogStore, UserStore
from schemas.diet_schema import (
    AIDietResponse,
    FoodItem,
    GeneratedDietPlan,
    MacroBreakdown,
    Meal,
    PreviousDayProgress,
)
from schemas.user_schema import UserProfile
from services.completion_client import CompletionClient
from services.nutrition_calculator import NutritionCalculator, nutrition_calculator, round_half_up
from services.nutrition_estimator import NutritionEstimator, nutrition_estimator
from services.response_parsing import extract_json_object

logger = get_logger("services.diet_generation")

LOW_ADHERENCE_THRESHOLD = 70
PROVENANCE_TAGS = ("manual", "ai", "auto-daily")


def _join(values: List[str], empty: str = "None") -> str:
    return ", ".join(values) if values else empty


class DietGenerationService:
    """Generates and persists AI diet plans.

    Args:
        completion_client: LLM client exposing `generate_diet_plan(prompt)`.
        estimator: Nutrition estimator used to validate every food item.
        calculator: BMR/TDEE/macro calculator.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        estimator: NutritionEstimator = nutrition_estimator,
        calculator: NutritionCalculator = nutrition_calculator,
    ):
        self.completion_client = completion_client
        self.estimator = estimator
        self.calculator = calculator

    def compute_targets(self, profile: UserProfile) -> Dict[str, object]:
        """Return TDEE, target calories and macro grams for a complete profile."""
        goal = profile.primary_goal
        bmr = self.calculator.calculate_bmr(profile.age, profile.height, profile.weight, profile.gender or "other")
        tdee = self.calculator.calculate_tdee(bmr, profile.activity_level or "moderate")
        target_calories = self.calculator.calculate_target_calories(tdee, goal)
        macros = self.calculator.calculate_macros(target_calories, goal)
        return {"bmr": bmr, "tdee": tdee, "target_calories": target_calories, "macros": macros}

    def previous_day_progress(
        self, log: models.ProgressLog, target_calories: float
    ) -> PreviousDayProgress:
        """Summarize a progress log against today's target.

        Adherence is capped at 100 and only flavors the prompt text.
        """
        meals = log.meals or []
        consumed = sum((m.get("calories") or 0) for m in meals)
        adherence = consumed / target_calories * 100 if target_calories else 0
        return PreviousDayProgress(
            calories_consumed=consumed,
            meals_logged=len(meals),
            adherence_score=min(100, round_half_up(adherence)),
        )

    def build_prompt(
        self,
        profile: UserProfile,
        plan_date: date,
        target_calories: int,
        macros: Dict[str, int],
        previous: Optional[PreviousDayProgress] = None,
    ) -> str:
        prompt = f"""Generate a personalized daily meal plan for the following user:

**User Profile:**
- Age: {profile.age} years
- Weight: {profile.weight} kg
- Height: {profile.height} cm
- Gender: {profile.gender or 'other'}
- Activity Level: {profile.activity_level or 'moderate'}
- Primary Goal: {profile.primary_goal}
- All Goals: {_join(profile.goals, 'maintenance')}

**Plan Date:** {plan_date.isoformat()}

**Nutritional Targets:**
- Daily Calories: {target_calories} kcal
- Protein: {macros['protein']}g
- Carbs: {macros['carbs']}g
- Fats: {macros['fats']}g

**Preferences:** {_join(profile.preferences)}
**Restrictions:** {_join(profile.restrictions)}
"""
        if previous is not None:
            prompt += f"""
**Previous Day Performance:**
- Calories Consumed: {previous.calories_consumed:g} kcal
- Meals Logged: {previous.meals_logged}
- Adherence Score: {previous.adherence_score}%
"""
            if previous.adherence_score < LOW_ADHERENCE_THRESHOLD:
                prompt += "- Note: Low adherence, suggest simpler, easier-to-prepare meals\n"

        prompt += """
**Instructions:**
1. Create 4-6 meals throughout the day (breakfast, lunch, dinner, snacks)
2. Each meal should have specific foods with portions
3. Ensure total macros match targets within 5% tolerance
4. Consider user preferences and restrictions
5. Provide meal times (e.g., "08:00", "12:30")
6. Make meals practical and easy to prepare

**Response Format (JSON only, no additional text):**
{
  "meals": [
    {
      "name": "Breakfast",
      "time": "08:00",
      "foods": [
        {"name": "Oatmeal", "portion": "100g", "calories": 350, "protein": 12, "carbs": 58, "fats": 7}
      ]
    }
  ]
}"""
        return prompt

    def parse_and_validate_meals(self, ai_response: str) -> List[Meal]:
        """Parse the AI JSON and rebuild each food's nutrition with the estimator.

        The model's own calorie/macro numbers are discarded.

        Raises:
            ParseError: If no JSON object is present.
            InvalidStructureError: If `meals` or a food's name/portion is missing.
        """
        data = extract_json_object(ai_response)
        try:
            parsed = AIDietResponse.model_validate(data)
        except PydanticValidationError as exc:
            raise InvalidStructureError(
                "Invalid diet plan structure in AI response",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )

        meals = []
        for idx, ai_meal in enumerate(parsed.meals):
            foods = []
            for ai_food in ai_meal.foods:
                estimate = self.estimator.estimate(ai_food.name, ai_food.portion)
                foods.append(FoodItem(
                    name=ai_food.name,
                    portion=ai_food.portion,
                    calories=estimate.calories,
                    protein=estimate.protein,
                    carbs=estimate.carbs,
                    fats=estimate.fats,
                ))
            meals.append(Meal(name=ai_meal.name or f"Meal {idx + 1}", time=ai_meal.time, foods=foods))
        return meals

    def generate(
        self,
        db: Session,
        user_id: int,
        plan_date: date,
        previous_progress_log_id: Optional[int] = None,
    ) -> GeneratedDietPlan:
        """Generate (but do not persist) a diet plan for `user_id` on `plan_date`.

        Raises:
            NotFoundError: If the user does not exist.
            IncompleteProfileError: If age, weight or height is missing.
            UpstreamError: If the LLM call fails.
            ParseError: If the AI response cannot be parsed.
        """
        profile = UserStore(db).find_profile(user_id)
        missing = profile.missing_fields()
        if missing:
            raise IncompleteProfileError(missing)

        targets = self.compute_targets(profile)
        target_calories = targets["target_calories"]
        macros = targets["macros"]

        previous = None
        if previous_progress_log_id is not None:
            log = ProgressLogStore(db).find_for_user(user_id, previous_progress_log_id)
            if log is not None:
                previous = self.previous_day_progress(log, target_calories)

        prompt = self.build_prompt(profile, plan_date, target_calories, macros, previous)
        logger.info("Generating diet plan for user=%s date=%s", user_id, plan_date)
        ai_response = self.completion_client.generate_diet_plan(prompt)

        meals = self.parse_and_validate_meals(ai_response)
        plan = GeneratedDietPlan(
            target_calories=target_calories,
            target_macros=MacroBreakdown(**macros),
            meals=meals,
        )
        logger.info(
            "Generated diet plan for user=%s: target=%s actual=%s meals=%s",
            user_id, target_calories, plan.daily_calories, len(meals),
        )
        return plan

    def save_diet_plan(
        self,
        db: Session,
        user_id: int,
        plan_date: date,
        plan: GeneratedDietPlan,
        generated_from: str,
        previous_progress_log_id: Optional[int] = None,
    ) -> models.DietPlan:
        """Persist a generated plan.

        A progress log that does not belong to the user is not linked.

        Raises:
            ConflictError: If a plan already exists for (user, date).
        """
        if generated_from not in PROVENANCE_TAGS:
            raise ValidationError(f"Unknown provenance tag: {generated_from}", field="generated_from")
        if (
            previous_progress_log_id is not None
            and ProgressLogStore(db).find_for_user(user_id, previous_progress_log_id) is None
        ):
            logger.warning("Ignoring progress log %s not owned by user=%s", previous_progress_log_id, user_id)
            previous_progress_log_id = None
        macros = plan.macros
        record = models.DietPlan(
            user_id=user_id,
            name=f"Diet Plan - {plan_date.isoformat()}",
            date=plan_date,
            daily_calories=plan.daily_calories,
            protein=macros.protein,
            carbs=macros.carbs,
            fats=macros.fats,
            target_calories=plan.target_calories,
            target_protein=plan.target_macros.protein,
            target_carbs=plan.target_macros.carbs,
            target_fats=plan.target_macros.fats,
            meals=[m.model_dump() for m in plan.meals],
            generated_from=generated_from,
            previous_day_progress_id=previous_progress_log_id,
        )
        return DietPlanStore(db).insert_plan(record)
