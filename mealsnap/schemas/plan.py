"""
Domain records for a weekly meal plan.

These are the validated shapes the workflow owns. Raw AI output is parsed by
the wire schemas in mealsnap.services.ai_schemas and converted into these.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


WEEKDAYS = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")


class Ingredient(BaseModel):
    name: str
    quantity: str  # free text, e.g. "sekitar 500g" or "6 butir"

    def label(self) -> str:
        return f"{self.name} ({self.quantity})"


class DietaryPreferences(BaseModel):
    """User diet flags. Serialized with camelCase keys (glutenFree, dairyFree)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    vegetarian: bool = False
    gluten_free: bool = False
    dairy_free: bool = False
    lainnya: str = ""  # "other": free-text restrictions

    def active_labels(self) -> list[str]:
        """Human-readable list of the active restrictions, in prompt language."""
        labels = []
        if self.vegetarian:
            labels.append("vegetarian")
        if self.gluten_free:
            labels.append("bebas gluten")
        if self.dairy_free:
            labels.append("bebas susu")
        if self.lainnya.strip():
            labels.append(self.lainnya.strip())
        return labels


class NutritionInfo(BaseModel):
    # Free text; the model decides units ("450 kcal", "30g")
    calories: str
    protein: str
    carbohydrate: str
    fat: str


class Recipe(BaseModel):
    name: str
    description: str
    ingredients: list[str]
    instructions: list[str]
    cook_time: str
    image_url: Optional[str] = None  # data URI, filled lazily and then cached
    nutrition: Optional[NutritionInfo] = None
    tips: list[str] = []
    serving_suggestions: list[str] = []


class DailyMeal(BaseModel):
    day: str
    recipe: Recipe
