"""Network-free nutrition estimation for AI-generated food items.

Converts a food name and a free-text portion ("150g", "1 cup", "2 tbsp")
into calories and macros using a fixed per-100g table. The table is
matched by ordered substring search, first match wins, so more specific
entries (e.g. "chicken breast") must precede general ones ("chicken").
Results are deterministic and flagged as not externally validated.
"""

import re
from typing import NamedTuple, Tuple

from core.logger import get_logger
from services.nutrition_calculator import round_half_up

logger = get_logger("services.nutrition_estimator")

GRAMS_PER_CUP = 240
GRAMS_PER_TBSP = 15
GRAMS_PER_TSP = 5
DEFAULT_PORTION_GRAMS = 100

_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")


class MacroProfile(NamedTuple):
    calories: float
    protein: float
    carbs: float
    fats: float


class NutritionEstimate(NamedTuple):
    calories: int
    protein: int
    carbs: int
    fats: int
    validated: bool = False


DEFAULT_PROFILE = MacroProfile(150, 10, 20, 5)

# (alternatives, profile); an alternative matches when all its words occur
FOOD_TABLE: Tuple[Tuple[Tuple[Tuple[str, ...], ...], MacroProfile], ...] = (
    # proteins
    ((("chicken breast",), ("turkey",)), MacroProfile(165, 31, 0, 3.6)),
    ((("chicken",), ("fish",), ("tuna",)), MacroProfile(200, 26, 0, 10)),
    ((("salmon",),), MacroProfile(208, 20, 0, 13)),
    ((("egg",),), MacroProfile(155, 13, 1, 11)),
    ((("tofu",),), MacroProfile(76, 8, 2, 4.8)),
    ((("beef",), ("steak",)), MacroProfile(250, 26, 0, 15)),
    # carbs / starches
    ((("rice",),), MacroProfile(130, 2.7, 28, 0.3)),
    ((("pasta",),), MacroProfile(131, 5, 25, 1.1)),
    ((("bread",), ("toast",)), MacroProfile(265, 9, 49, 3.2)),
    ((("oat",),), MacroProfile(389, 17, 66, 7)),
    ((("potato",),), MacroProfile(86, 1.6, 20, 0.1)),
    ((("quinoa",),), MacroProfile(120, 4.4, 21, 1.9)),
    # dairy
    ((("milk", "skim"),), MacroProfile(34, 3.4, 5, 0.1)),
    ((("milk",),), MacroProfile(61, 3.2, 4.8, 3.3)),
    ((("yogurt",),), MacroProfile(59, 10, 3.6, 0.4)),
    ((("cheese",),), MacroProfile(402, 25, 1.3, 33)),
    # fats / nuts
    ((("almond",), ("peanut",), ("nut",)), MacroProfile(579, 21, 22, 50)),
    ((("butter",),), MacroProfile(717, 0.9, 0.1, 81)),
    ((("oil",), ("olive",)), MacroProfile(884, 0, 0, 100)),
    ((("avocado",),), MacroProfile(160, 2, 9, 15)),
    # vegetables
    ((("broccoli",), ("spinach",), ("lettuce",)), MacroProfile(34, 2.8, 7, 0.4)),
    ((("vegetable",), ("salad",)), MacroProfile(40, 2, 8, 0.3)),
    # fruits
    ((("banana",),), MacroProfile(89, 1.1, 23, 0.3)),
    ((("apple",), ("orange",)), MacroProfile(52, 0.3, 14, 0.2)),
    ((("berry",), ("berries",)), MacroProfile(57, 0.7, 14, 0.3)),
)


def portion_to_grams(portion: str) -> float:
    """Convert a portion string to grams.

    Cups, tablespoons and teaspoons default to one unit when no number is
    given; anything else is read as grams, defaulting to 100 g.
    """
    text = (portion or "").lower()
    match = _NUMBER.search(text)
    quantity = float(match.group(1)) if match else None

    if "cup" in text:
        return round_half_up((quantity if quantity is not None else 1) * GRAMS_PER_CUP)
    if "tbsp" in text or "tablespoon" in text:
        return (quantity if quantity is not None else 1) * GRAMS_PER_TBSP
    if "tsp" in text or "teaspoon" in text:
        return (quantity if quantity is not None else 1) * GRAMS_PER_TSP
    return quantity if quantity is not None else DEFAULT_PORTION_GRAMS


def classify(food_name: str) -> MacroProfile:
    """Return the per-100g profile of the first table entry matching `food_name`."""
    name = (food_name or "").lower()
    for alternatives, profile in FOOD_TABLE:
        if any(all(word in name for word in words) for words in alternatives):
            return profile
    return DEFAULT_PROFILE


class NutritionEstimator:
    """Estimates nutrition for a food item; never raises."""

    def estimate(self, food_name: str, portion: str) -> NutritionEstimate:
        grams = portion_to_grams(portion)
        profile = classify(food_name)
        multiplier = grams / 100
        estimate = NutritionEstimate(
            calories=round_half_up(profile.calories * multiplier),
            protein=round_half_up(profile.protein * multiplier),
            carbs=round_half_up(profile.carbs * multiplier),
            fats=round_half_up(profile.fats * multiplier),
        )
        logger.debug("Estimated %s %s (%sg): %s", portion, food_name, grams, estimate)
        return estimate


nutrition_estimator = NutritionEstimator()
__all__ = ["NutritionEstimator", "NutritionEstimate", "nutrition_estimator", "portion_to_grams", "classify"]
