"""
Unit tests for AI schema validation and conversational retry logic.

Tests the Pydantic schema models and _call_with_schema_retry() helper
directly, using mocked Claude API responses.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from pydantic import ValidationError

from mealsnap.schemas.plan import DailyMeal, Recipe
from mealsnap.services.ai_schemas import (
    DailyMealSchema,
    IngredientListSchema,
    IngredientSchema,
    MealPlanSchema,
    RecipeSchema,
)
from mealsnap.services.ai_service import (
    ClaudeService,
    InvalidAIResponseError,
    _fix_trailing_commas,
    _strip_markdown_json,
)


# =============================================================================
# Schema Validation Tests
# =============================================================================


class TestIngredientSchema:
    def test_valid(self):
        result = IngredientSchema.model_validate({"name": "Telur", "quantity": "6 butir"})
        assert result.name == "Telur"

    def test_values_are_stripped(self):
        result = IngredientSchema.model_validate({"name": "  Bayam ", "quantity": " 1 ikat"})
        assert result.name == "Bayam"
        assert result.quantity == "1 ikat"

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            IngredientSchema.model_validate({"name": "   ", "quantity": "1 ikat"})

    def test_missing_quantity(self):
        with pytest.raises(ValidationError):
            IngredientSchema.model_validate({"name": "Bayam"})

    def test_list_accepts_anything_per_item(self):
        result = IngredientListSchema.model_validate({"ingredients": [{"name": "x"}, "y", 3]})
        assert len(result.ingredients) == 3

    def test_list_must_be_a_list(self):
        with pytest.raises(ValidationError):
            IngredientListSchema.model_validate({"ingredients": "telur"})


class TestRecipeSchema:
    def _recipe(self, **overrides):
        data = {
            "name": "Sayur Bening Bayam",
            "description": "Sayur kuah bening.",
            "ingredients": ["1 ikat bayam", "1 buah jagung"],
            "instructions": ["Rebus air.", "Masukkan sayuran."],
            "cook_time": "20 menit",
        }
        data.update(overrides)
        return data

    def test_minimal(self):
        result = RecipeSchema.model_validate(self._recipe())
        assert result.nutrition is None
        assert result.tips == []
        assert result.serving_suggestions == []

    def test_partial_nutrition_defaults(self):
        result = RecipeSchema.model_validate(self._recipe(nutrition={"calories": "120 kcal"}))
        assert result.nutrition.calories == "120 kcal"
        assert result.nutrition.fat == ""

    def test_missing_instructions(self):
        data = self._recipe()
        del data["instructions"]
        with pytest.raises(ValidationError):
            RecipeSchema.model_validate(data)

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            RecipeSchema.model_validate(self._recipe(name=""))

    def test_dump_loads_into_domain_recipe(self):
        dumped = RecipeSchema.model_validate(
            self._recipe(nutrition={"calories": "1", "protein": "2", "carbohydrate": "3", "fat": "4"})
        ).model_dump()

        recipe = Recipe.model_validate(dumped)

        assert recipe.name == "Sayur Bening Bayam"
        assert recipe.nutrition.carbohydrate == "3"


class TestMealPlanSchema:
    def test_valid(self):
        data = {
            "days": [
                {
                    "day": "Senin",
                    "recipe": {
                        "name": "Tumis Kangkung",
                        "ingredients": ["1 ikat kangkung"],
                        "instructions": ["Tumis."],
                    },
                }
            ]
        }
        result = MealPlanSchema.model_validate(data)
        meal = DailyMeal.model_validate(result.days[0].model_dump())
        assert meal.day == "Senin"
        assert meal.recipe.cook_time == ""

    def test_empty_days(self):
        assert MealPlanSchema.model_validate({"days": []}).days == []

    def test_days_not_a_list(self):
        with pytest.raises(ValidationError):
            MealPlanSchema.model_validate({"days": {"Senin": {}}})

    def test_day_missing_recipe(self):
        with pytest.raises(ValidationError):
            DailyMealSchema.model_validate({"day": "Senin"})


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestStripMarkdownJson:
    def test_json_code_block(self):
        text = '```json\n{"key": "value"}\n```'
        assert _strip_markdown_json(text) == '{"key": "value"}'

    def test_generic_code_block(self):
        text = '```\n{"key": "value"}\n```'
        assert _strip_markdown_json(text) == '{"key": "value"}'

    def test_no_code_block(self):
        text = '{"key": "value"}'
        assert _strip_markdown_json(text) == '{"key": "value"}'

    def test_json_block_with_surrounding_text(self):
        text = 'Here is the result:\n```json\n{"key": "value"}\n```\nDone.'
        assert _strip_markdown_json(text) == '{"key": "value"}'


class TestFixTrailingCommas:
    def test_trailing_comma_in_object(self):
        assert _fix_trailing_commas('{"a": 1,}') == '{"a": 1}'

    def test_trailing_comma_in_array(self):
        assert _fix_trailing_commas("[1, 2, 3,]") == "[1, 2, 3]"

    def test_nested_trailing_commas(self):
        text = '{"a": [1, 2,], "b": {"c": 3,},}'
        result = _fix_trailing_commas(text)
        assert json.loads(result) == {"a": [1, 2], "b": {"c": 3}}


# =============================================================================
# Retry Logic Tests (mock Claude API)
# =============================================================================


def _make_mock_response(text_content: str):
    """Create a mock Anthropic response with given text content."""
    mock_block = MagicMock()
    mock_block.text = text_content

    mock_response = MagicMock()
    mock_response.content = [mock_block]
    return mock_response


def _make_empty_response():
    """Create a mock Anthropic response with no text blocks."""
    mock_block = MagicMock(spec=[])  # no text attribute

    mock_response = MagicMock()
    mock_response.content = [mock_block]
    return mock_response


class TestCallWithSchemaRetry:
    """Tests for ClaudeService._call_with_schema_retry()."""

    def _make_service(self, mock_create):
        """Create a ClaudeService with a mocked client."""
        service = ClaudeService()
        service.client = MagicMock()
        service.client.messages.create = mock_create
        return service

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        mock_create = AsyncMock(return_value=_make_mock_response('"days": []}'))
        service = self._make_service(mock_create)

        validated, raw_text, _ = await service._call_with_schema_retry(
            messages=[{"role": "user", "content": "plan"}],
            schema_class=MealPlanSchema,
            request_params={"model": "m", "max_tokens": 10},
        )

        assert validated == {"days": []}
        assert raw_text == '"days": []}'
        assert mock_create.call_count == 1

    @pytest.mark.asyncio
    async def test_empty_response_then_success(self):
        mock_create = AsyncMock(
            side_effect=[_make_empty_response(), _make_mock_response('"days": []}')]
        )
        service = self._make_service(mock_create)
        messages = [{"role": "user", "content": "plan"}]

        validated, _, _ = await service._call_with_schema_retry(
            messages=messages,
            schema_class=MealPlanSchema,
            request_params={"model": "m", "max_tokens": 10},
        )

        assert validated == {"days": []}
        assert messages[1] == {"role": "assistant", "content": "(empty response)"}

    @pytest.mark.asyncio
    async def test_all_attempts_fail(self):
        mock_create = AsyncMock(return_value=_make_mock_response("nope"))
        service = self._make_service(mock_create)

        with pytest.raises(InvalidAIResponseError):
            await service._call_with_schema_retry(
                messages=[{"role": "user", "content": "plan"}],
                schema_class=MealPlanSchema,
                request_params={"model": "m", "max_tokens": 10},
                max_retries=1,
            )

        assert mock_create.call_count == 2

    @pytest.mark.asyncio
    async def test_invalid_response_is_a_value_error(self):
        mock_create = AsyncMock(return_value=_make_empty_response())
        service = self._make_service(mock_create)

        with pytest.raises(ValueError):
            await service._call_with_schema_retry(
                messages=[{"role": "user", "content": "plan"}],
                schema_class=MealPlanSchema,
                request_params={"model": "m", "max_tokens": 10},
                max_retries=0,
            )
