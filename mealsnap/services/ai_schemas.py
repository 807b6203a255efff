"""
Pydantic models for validating structured JSON responses from Claude AI.

Each schema corresponds to one AI method's expected response format.
Used by _call_with_schema_retry() in ai_service.py for validation + retry.
Field names match the domain records in mealsnap.schemas.plan, so a validated
dump can be loaded straight into Recipe / DailyMeal.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Ingredient Extraction (extract_ingredients) ---


class IngredientSchema(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(min_length=1)
    quantity: str = Field(min_length=1)

    @field_validator("name", "quantity", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class IngredientListSchema(BaseModel):
    # Items are validated one by one in the service so a single malformed
    # entry does not sink the whole batch
    ingredients: list[Any]


# --- Recipes (generate_meal_plan, regenerate_recipe) ---


class NutritionSchema(BaseModel):
    # Free text, but the model sometimes answers with a bare number
    model_config = ConfigDict(coerce_numbers_to_str=True)

    calories: str = ""
    protein: str = ""
    carbohydrate: str = ""
    fat: str = ""


class RecipeSchema(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(min_length=1)
    description: str = ""
    ingredients: list[str]
    instructions: list[str]
    cook_time: str = ""
    nutrition: NutritionSchema | None = None
    tips: list[str] = []
    serving_suggestions: list[str] = []


class DailyMealSchema(BaseModel):
    day: str = Field(min_length=1)
    recipe: RecipeSchema


class MealPlanSchema(BaseModel):
    days: list[DailyMealSchema]
