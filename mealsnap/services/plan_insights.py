"""Read-only views computed from a meal plan: weekly nutrition and pantry coverage."""

import re
from dataclasses import dataclass, asdict

from mealsnap.schemas.plan import DailyMeal, Ingredient, Recipe

_NUMBER = re.compile(r"\d+(?:[.,]\d+)*")


def parse_amount(text: str | None) -> float:
    """
    Pull the leading number out of a free-text amount.

    "450 kcal" -> 450, "30g" -> 30, "12,5 g" -> 12.5, "1.200 kcal" -> 1200.
    A separator followed by exactly three digits is read as a thousands
    separator unless the integer part is 0 ("0.250 kg" -> 0.25); anything
    else is a decimal point. No number means 0.
    """
    if not text:
        return 0.0
    match = _NUMBER.search(text)
    if not match:
        return 0.0

    token = match.group(0)
    parts = re.split(r"[.,]", token)
    if len(parts) == 1:
        return float(token)

    integer = parts[0]
    for part in parts[1:-1]:
        integer += part
    last = parts[-1]
    if len(last) == 3 and integer != "0":
        return float(integer + last)
    return float(f"{integer}.{last}")


@dataclass
class NutritionTotals:
    calories: float = 0.0
    protein: float = 0.0
    carbohydrate: float = 0.0
    fat: float = 0.0
    days_counted: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def summarize_nutrition(meal_plan: list[DailyMeal]) -> NutritionTotals:
    """Sum per-serving nutrition over every day that reports it."""
    totals = NutritionTotals()
    for meal in meal_plan:
        nutrition = meal.recipe.nutrition
        if nutrition is None:
            continue
        totals.calories += parse_amount(nutrition.calories)
        totals.protein += parse_amount(nutrition.protein)
        totals.carbohydrate += parse_amount(nutrition.carbohydrate)
        totals.fat += parse_amount(nutrition.fat)
        totals.days_counted += 1
    return totals


def is_ingredient_owned(ingredient_line: str, owned: list[Ingredient]) -> bool:
    """
    True if a recipe ingredient line mentions something the user has.

    Case-insensitive substring match in either direction, so "2 butir telur"
    matches an owned "Telur".
    """
    line = ingredient_line.lower()
    for item in owned:
        name = item.name.strip().lower()
        if name and (name in line or line in name):
            return True
    return False


def missing_ingredients(recipe: Recipe, owned: list[Ingredient]) -> list[str]:
    """Recipe ingredient lines not covered by the user's ingredients."""
    return [line for line in recipe.ingredients if not is_ingredient_owned(line, owned)]
