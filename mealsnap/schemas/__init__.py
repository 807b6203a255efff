"""Pydantic domain records shared by services, API and CLI."""

from mealsnap.schemas.plan import (
    WEEKDAYS,
    Ingredient,
    DietaryPreferences,
    NutritionInfo,
    Recipe,
    DailyMeal,
)

__all__ = [
    "WEEKDAYS",
    "Ingredient",
    "DietaryPreferences",
    "NutritionInfo",
    "Recipe",
    "DailyMeal",
]
