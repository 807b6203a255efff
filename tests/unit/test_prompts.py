"""Unit tests for prompt builders."""

from mealsnap.schemas.plan import DietaryPreferences, Ingredient
from mealsnap.services.prompts import (
    FLEXIBLE_INGREDIENTS_INSTRUCTION,
    NO_PREFERENCES_TEXT,
    STRICT_INGREDIENTS_INSTRUCTION,
    build_meal_plan_request,
    build_regeneration_request,
)
from tests.factories import make_plan

INGREDIENTS = [
    Ingredient(name="Telur", quantity="6 butir"),
    Ingredient(name="Wortel", quantity="2 buah"),
]


class TestMealPlanRequest:
    def test_strict(self):
        prompt = build_meal_plan_request(INGREDIENTS, DietaryPreferences(), strict=True)

        assert "Telur (6 butir), Wortel (2 buah)" in prompt
        assert NO_PREFERENCES_TEXT in prompt
        assert STRICT_INGREDIENTS_INSTRUCTION in prompt

    def test_flexible_with_preferences(self):
        prefs = DietaryPreferences(gluten_free=True, dairy_free=True, lainnya=" tanpa kacang ")

        prompt = build_meal_plan_request(INGREDIENTS, prefs, strict=False)

        assert FLEXIBLE_INGREDIENTS_INSTRUCTION in prompt
        assert STRICT_INGREDIENTS_INSTRUCTION not in prompt
        assert "bebas gluten, bebas susu, tanpa kacang" in prompt


class TestRegenerationRequest:
    def test_names_current_and_other_recipes(self):
        prompt = build_regeneration_request(
            INGREDIENTS, DietaryPreferences(), True, make_plan("Menu"), "Rabu"
        )

        assert "for Rabu" in prompt
        assert '"Menu Rabu"' in prompt
        assert "Menu Senin" in prompt
        assert "Menu Minggu" in prompt
        assert STRICT_INGREDIENTS_INSTRUCTION in prompt

    def test_day_not_in_plan(self):
        prompt = build_regeneration_request(
            INGREDIENTS, DietaryPreferences(), False, make_plan("Menu", days=["Senin"]), "Selasa"
        )

        assert "current recipe" not in prompt
        assert "Menu Senin" in prompt
        assert FLEXIBLE_INGREDIENTS_INSTRUCTION in prompt
