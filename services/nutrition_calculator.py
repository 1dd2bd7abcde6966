"""Nutrition calculation helpers.

Provides BMI/BMR/TDEE, goal-adjusted calorie targets and macro allocation
used by the diet generation pipeline.
"""

import math
from typing import Dict
from core.logger import get_logger

logger = get_logger("services.nutrition_calculator")

ACTIVITY_MULTIPLIERS = {
    'sedentary': 1.2,
    'light': 1.375,
    'moderate': 1.55,
    'active': 1.725,
    'very_active': 1.9,
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.55

GOAL_CALORIE_ADJUSTMENTS = {
    'weight_loss': -500,
    'muscle_gain': 300,
    'maintenance': 0,
    'endurance': 200,
}

# protein / carbs / fat share of calories
GOAL_MACRO_RATIOS = {
    'muscle_gain': {'protein': 0.30, 'carbs': 0.45, 'fats': 0.25},
    'weight_loss': {'protein': 0.35, 'carbs': 0.35, 'fats': 0.30},
    'endurance': {'protein': 0.20, 'carbs': 0.55, 'fats': 0.25},
}
DEFAULT_MACRO_RATIOS = {'protein': 0.25, 'carbs': 0.45, 'fats': 0.30}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


class NutritionCalculator:
    """Class-based nutrition calculator used across the app."""

    def calculate_bmi(self, height_cm: float, weight_kg: float) -> float:
        """Calculate BMI from height in cm and weight in kg."""
        h_m = height_cm / 100.0
        if h_m <= 0:
            return 0.0
        return weight_kg / (h_m * h_m)

    def calculate_bmr(self, age: int, height_cm: float, weight_kg: float, gender: str) -> float:
        """Calculate BMR using the Mifflin-St Jeor equation.

        Anything other than 'male' (including missing) uses the -161 branch.
        """
        if (gender or '').lower() == 'male':
            return 10 * weight_kg + 6.25 * height_cm - 5 * age + 5
        else:
            return 10 * weight_kg + 6.25 * height_cm - 5 * age - 161

    def calculate_tdee(self, bmr: float, activity_level: str) -> int:
        """Estimate TDEE from BMR and activity multiplier (1.55 if unknown)."""
        multiplier = ACTIVITY_MULTIPLIERS.get(activity_level, DEFAULT_ACTIVITY_MULTIPLIER)
        val = round_half_up(bmr * multiplier)
        logger.debug("TDEE calculated: %s (x%s)", val, multiplier)
        return val

    def calculate_target_calories(self, tdee: float, goal: str) -> int:
        """Derive a daily calorie target from TDEE based on the primary goal."""
        val = round_half_up(tdee + GOAL_CALORIE_ADJUSTMENTS.get(goal, 0))
        logger.debug("Target calories for goal %s: %s", goal, val)
        return val

    def calculate_macros(self, target_calories: float, goal: str) -> Dict[str, int]:
        """Allocate macronutrient targets (grams) from a calorie target.

        Protein and carbs at 4 kcal/g, fat at 9 kcal/g, each rounded.
        """
        ratios = GOAL_MACRO_RATIOS.get(goal, DEFAULT_MACRO_RATIOS)
        macros = {
            'protein': round_half_up(target_calories * ratios['protein'] / 4),
            'carbs': round_half_up(target_calories * ratios['carbs'] / 4),
            'fats': round_half_up(target_calories * ratios['fats'] / 9),
        }
        logger.debug("Macros calculated: %s", macros)
        return macros


# export singleton
nutrition_calculator = NutritionCalculator()
__all__ = ["NutritionCalculator", "nutrition_calculator", "round_half_up"]
