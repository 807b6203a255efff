"""
Mock services for testing AI functionality.

These mocks provide deterministic responses for testing without API calls.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from mealsnap.schemas.plan import DailyMeal, DietaryPreferences, Ingredient, Recipe
from tests.factories import make_ingredients, make_plan, make_recipe


class _MockBase:
    """Call tracking, one-shot error injection and pausable methods."""

    def __init__(self):
        # Track method calls for assertions
        self.calls: Dict[str, List[Dict]] = {}

        # Error simulation
        self._raise_error: Optional[Exception] = None

        # method name -> event the call waits on before answering
        self._gates: Dict[str, asyncio.Event] = {}

    def _record_call(self, method: str, **kwargs):
        """Record a method call for assertion."""
        if method not in self.calls:
            self.calls[method] = []
        self.calls[method].append(
            {"timestamp": datetime.utcnow().isoformat(), "kwargs": kwargs}
        )

    def call_count(self, method: str) -> int:
        return len(self.calls.get(method, []))

    def reset(self):
        """Reset all recorded calls and responses."""
        self.calls = {}
        self._raise_error = None
        self._gates = {}

    def set_error(self, error: Exception):
        """Set an error to raise on next call."""
        self._raise_error = error

    def pause(self, method: str):
        """Make calls to `method` wait until release(method)."""
        self._gates[method] = asyncio.Event()

    def release(self, method: str):
        self._gates.pop(method).set()

    async def _answer(self, method: str):
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()

        if self._raise_error:
            error = self._raise_error
            self._raise_error = None
            raise error


class MockClaudeService(_MockBase):
    """
    Mock Claude service for testing the workflow.

    Provides configurable responses for all ClaudeService methods.
    Configure responses per-test by calling the set_* methods.
    """

    def __init__(self):
        super().__init__()

        # Default model names
        self.vision_model = "claude-sonnet-4-5-20250929"
        self.planner_model = "claude-sonnet-4-5-20250929"

        # Configurable responses (set per test)
        self._extract_ingredients_response: Optional[List[Ingredient]] = None
        self._meal_plan_responses: Dict[bool, Optional[List[DailyMeal]]] = {
            True: None,
            False: None,
        }
        self._meal_plan_errors: Dict[bool, Optional[Exception]] = {
            True: None,
            False: None,
        }
        self._regenerated_recipes: List[Recipe] = []
        self._regenerate_count = 0

    # =========================================================================
    # Ingredient Extraction
    # =========================================================================

    async def extract_ingredients(self, images) -> List[Ingredient]:
        """Mock ingredient extraction."""
        self._record_call("extract_ingredients", images=images)
        await self._answer("extract_ingredients")

        if self._extract_ingredients_response is not None:
            return list(self._extract_ingredients_response)
        return make_ingredients()

    def set_extract_ingredients_response(self, ingredients: List[Ingredient]):
        """Configure extract_ingredients response."""
        self._extract_ingredients_response = ingredients

    # =========================================================================
    # Meal Plan Generation
    # =========================================================================

    async def generate_meal_plan(
        self,
        ingredients: List[Ingredient],
        preferences: DietaryPreferences,
        strict: bool,
    ) -> List[DailyMeal]:
        """Mock plan generation; strict and flexible answers configured separately."""
        self._record_call(
            "generate_meal_plan",
            ingredients=ingredients,
            preferences=preferences,
            strict=strict,
        )
        await self._answer("generate_meal_plan")

        error = self._meal_plan_errors[strict]
        if error is not None:
            raise error

        response = self._meal_plan_responses[strict]
        if response is not None:
            return list(response)
        return make_plan("Resep Ketat" if strict else "Resep Fleksibel")

    def set_meal_plan_response(self, plan: List[DailyMeal], strict: bool):
        """Configure generate_meal_plan response for one mode."""
        self._meal_plan_responses[strict] = plan

    def set_meal_plan_error(self, error: Optional[Exception], strict: bool):
        """Raise `error` on every call in one mode (None clears it)."""
        self._meal_plan_errors[strict] = error

    # =========================================================================
    # Recipe Regeneration
    # =========================================================================

    async def regenerate_recipe(
        self,
        ingredients: List[Ingredient],
        preferences: DietaryPreferences,
        strict: bool,
        meal_plan: List[DailyMeal],
        day: str,
    ) -> Recipe:
        """Mock regeneration; queued recipes first, then numbered defaults."""
        self._record_call(
            "regenerate_recipe",
            ingredients=ingredients,
            preferences=preferences,
            strict=strict,
            meal_plan=meal_plan,
            day=day,
        )
        await self._answer("regenerate_recipe")

        if self._regenerated_recipes:
            return self._regenerated_recipes.pop(0)
        self._regenerate_count += 1
        return make_recipe(f"Resep Baru {day} {self._regenerate_count}")

    def queue_regenerated_recipe(self, recipe: Recipe):
        """Add a recipe to return from the next regenerate_recipe call."""
        self._regenerated_recipes.append(recipe)


class MockRecipeImageService(_MockBase):
    """Mock recipe photo generator."""

    def __init__(self):
        super().__init__()
        self._image_url = "data:image/jpeg;base64,ZmFrZS1pbWFnZQ=="

    async def generate_recipe_image(self, recipe_name: str) -> str:
        self._record_call("generate_recipe_image", recipe_name=recipe_name)
        await self._answer("generate_recipe_image")
        return self._image_url

    def set_image_url(self, image_url: str):
        self._image_url = image_url
