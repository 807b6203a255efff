"""
Claude AI integration service for ingredient extraction and meal planning.

This service provides three AI capabilities:
1. Ingredient extraction from one or more kitchen photos (vision)
2. Weekly dinner plan generation, strict or flexible about ingredients
3. Single-recipe regeneration for one day of an existing plan

Recipe photos come from a different provider, see image_service.py.
"""

import json
import re
import base64
import asyncio
import random
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from anthropic import AsyncAnthropic
import anthropic
import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from mealsnap.config import settings
from mealsnap.schemas.plan import DailyMeal, DietaryPreferences, Ingredient, Recipe
from mealsnap.services.ai_schemas import (
    IngredientSchema,
    IngredientListSchema,
    MealPlanSchema,
    RecipeSchema,
)
from mealsnap.services.prompts import (
    INGREDIENT_EXTRACTION_SYSTEM_PROMPT,
    INGREDIENT_EXTRACTION_USER_TEXT,
    MEAL_PLAN_SYSTEM_PROMPT,
    RECIPE_REGENERATION_SYSTEM_PROMPT,
    build_meal_plan_request,
    build_regeneration_request,
)


logger = logging.getLogger(__name__)

PLAN_LENGTH = 7


@dataclass(frozen=True)
class ImagePart:
    """An uploaded image held in memory, ready to send to a vision model."""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    def base64(self) -> str:
        return base64.standard_b64encode(self.data).decode("utf-8")


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def retry_on_connection_error(max_attempts=3, base_delay=1.0):
    """
    Retry decorator for API calls that may fail due to transient network issues.

    Args:
        max_attempts: Maximum retry attempts (default 3)
        base_delay: Base delay in seconds for exponential backoff (default 1.0)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except anthropic.APIConnectionError as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        # Exponential backoff with jitter
                        delay = base_delay * (2**attempt)
                        jitter = (
                            delay * 0.1 * (2 * random.random() - 1)
                        )  # ±10% random variance
                        sleep_time = delay + jitter

                        logger.warning(
                            "Connection error on attempt %d/%d, retrying in %.1fs...",
                            attempt + 1,
                            max_attempts,
                            sleep_time,
                        )
                        await asyncio.sleep(sleep_time)
                    else:
                        logger.error("All %d attempts failed", max_attempts)

            # All retries exhausted, raise the last exception
            raise ServiceUnavailableError(
                "AI service temporarily unavailable after retries"
            ) from last_exception

        return wrapper

    return decorator


class ClaudeService:
    """Claude API integration for every text and vision step of the workflow."""

    def __init__(self):
        timeout = httpx.Timeout(
            timeout=settings.anthropic_timeout,
            connect=settings.anthropic_connect_timeout,
        )
        self.client = AsyncAnthropic(api_key=settings.anthropic_api_key, timeout=timeout)
        self.vision_model = settings.vision_model
        self.planner_model = settings.planner_model

    # =========================================================================
    # SCHEMA VALIDATION + CONVERSATIONAL RETRY
    # =========================================================================

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def _create_message(self, messages: list[dict], request_params: dict):
        return await self.client.messages.create(messages=messages, **request_params)

    async def _call_with_schema_retry(
        self,
        messages: list[dict],
        schema_class: type[BaseModel],
        request_params: dict,
        max_retries: int = 2,
        prefill: str | None = "{",
    ) -> tuple[dict, str, object]:
        """
        Call Claude API with JSON schema validation and conversational retry.

        On schema failure: appends the bad response + error feedback to messages,
        re-calls with full conversation context so the LLM can self-correct.

        Args:
            messages: The messages list (will be mutated on retry)
            schema_class: Pydantic model class to validate against
            request_params: Dict of params for client.messages.create
                            (model, max_tokens, system, etc.)
                            NOTE: do NOT include 'messages' - they're passed separately
            max_retries: Number of retry attempts after initial call (default 2, so 3 total)
            prefill: Assistant prefill string, or None for no prefill

        Returns:
            (validated_dict, raw_response_text, response_object) tuple

        Raises:
            InvalidAIResponseError: If all attempts fail schema validation
        """
        response = None

        for attempt in range(1 + max_retries):
            call_messages = list(messages)  # copy
            if prefill:
                call_messages.append({"role": "assistant", "content": prefill})

            response = await self._create_message(call_messages, request_params)

            response_text = ""
            for block in response.content:
                if hasattr(block, "text"):
                    response_text += block.text

            if not response_text:
                if attempt < max_retries:
                    messages.append(
                        {"role": "assistant", "content": "(empty response)"}
                    )
                    messages.append(
                        {
                            "role": "user",
                            "content": "Your response contained no text. Please respond with valid JSON.",
                        }
                    )
                    continue
                raise InvalidAIResponseError("No text content in AI response after retries")

            # Reconstruct JSON (handle prefill)
            raw_text = response_text.strip()
            json_str = (prefill or "") + raw_text if prefill else raw_text

            json_str = _strip_markdown_json(json_str)
            json_str = _fix_trailing_commas(json_str)

            try:
                parsed = json.loads(json_str)
                adapter = TypeAdapter(schema_class)
                validated = adapter.validate_python(parsed)
                return validated.model_dump(), raw_text, response
            except (json.JSONDecodeError, ValidationError) as e:
                error_msg = str(e)
                logger.warning(
                    "AI response schema validation failed (attempt %d/%d) for %s: %s",
                    attempt + 1,
                    1 + max_retries,
                    schema_class.__name__,
                    error_msg,
                )

                if attempt < max_retries:
                    messages.append(
                        {
                            "role": "assistant",
                            "content": (prefill or "") + raw_text,
                        }
                    )
                    messages.append(
                        {
                            "role": "user",
                            "content": (
                                f"Your response had a schema error:\n{error_msg}\n\n"
                                f"Please fix and return valid JSON matching the required schema."
                            ),
                        }
                    )
                    continue

                raise InvalidAIResponseError(
                    f"AI response failed schema validation after {1 + max_retries} attempts: {error_msg}"
                )

        raise InvalidAIResponseError("AI response failed schema validation")

    # =========================================================================
    # INGREDIENT EXTRACTION
    # =========================================================================

    async def extract_ingredients(self, images: list[ImagePart]) -> list[Ingredient]:
        """
        Identify food ingredients across one or more kitchen photos.

        The model is asked to merge duplicates across photos. Items without a
        name or quantity are dropped here instead of failing the batch.

        Args:
            images: In-memory images (bytes + mime type), at least one

        Returns:
            List of Ingredient; may be empty when nothing edible was found

        Raises:
            ServiceUnavailableError: AI service temporarily down
            RateLimitError: Too many requests
            InvalidAIResponseError: Response never matched the schema
            ValueError: Request error
        """
        if not images:
            raise ValueError("At least one image is required")

        try:
            content = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image.mime_type,
                        "data": image.base64(),
                    },
                }
                for image in images
            ]
            content.append({"type": "text", "text": INGREDIENT_EXTRACTION_USER_TEXT})

            messages = [{"role": "user", "content": content}]

            validated, _raw_text, _response = await self._call_with_schema_retry(
                messages=messages,
                schema_class=IngredientListSchema,
                request_params={
                    "model": self.vision_model,
                    "max_tokens": 2048,
                    "system": INGREDIENT_EXTRACTION_SYSTEM_PROMPT,
                },
            )

            ingredients = []
            for item in validated["ingredients"]:
                try:
                    parsed = IngredientSchema.model_validate(item)
                except ValidationError:
                    logger.info("Dropping malformed ingredient from AI response: %r", item)
                    continue
                ingredients.append(Ingredient(name=parsed.name, quantity=parsed.quantity))

            return ingredients

        except anthropic.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

    # =========================================================================
    # MEAL PLAN GENERATION
    # =========================================================================

    async def generate_meal_plan(
        self,
        ingredients: list[Ingredient],
        preferences: DietaryPreferences,
        strict: bool,
    ) -> list[DailyMeal]:
        """
        Generate a 7-day dinner plan from the user's ingredients.

        Args:
            ingredients: The confirmed ingredient list
            preferences: Dietary preferences to respect
            strict: True forbids any ingredient outside the list, False lets
                    the model add common extras

        Returns:
            Up to 7 DailyMeal in the order the model returned them. An empty
            list is a valid (if unhelpful) answer, not an error.

        Raises:
            ServiceUnavailableError: AI service temporarily down
            RateLimitError: Too many requests
            InvalidAIResponseError: Response was unparseable or not a plan
            ValueError: Request error
        """
        try:
            messages = [
                {
                    "role": "user",
                    "content": build_meal_plan_request(ingredients, preferences, strict),
                }
            ]

            validated, _raw_text, _response = await self._call_with_schema_retry(
                messages=messages,
                schema_class=MealPlanSchema,
                request_params={
                    "model": self.planner_model,
                    "max_tokens": 16000,
                    "system": MEAL_PLAN_SYSTEM_PROMPT,
                },
            )

            days = validated["days"]
            if len(days) > PLAN_LENGTH:
                logger.warning(
                    "Meal plan had %d days, keeping the first %d", len(days), PLAN_LENGTH
                )
                days = days[:PLAN_LENGTH]

            return [DailyMeal.model_validate(day) for day in days]

        except anthropic.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

    # =========================================================================
    # SINGLE RECIPE REGENERATION
    # =========================================================================

    async def regenerate_recipe(
        self,
        ingredients: list[Ingredient],
        preferences: DietaryPreferences,
        strict: bool,
        meal_plan: list[DailyMeal],
        day: str,
    ) -> Recipe:
        """
        Ask for one replacement recipe for `day`.

        The prompt names the day's current recipe and every other day's recipe
        so the model avoids them. The answer is not checked for uniqueness.

        Raises:
            ServiceUnavailableError: AI service temporarily down
            RateLimitError: Too many requests
            InvalidAIResponseError: Response was not a recipe
            ValueError: Request error
        """
        try:
            messages = [
                {
                    "role": "user",
                    "content": build_regeneration_request(
                        ingredients, preferences, strict, meal_plan, day
                    ),
                }
            ]

            validated, _raw_text, _response = await self._call_with_schema_retry(
                messages=messages,
                schema_class=RecipeSchema,
                request_params={
                    "model": self.planner_model,
                    "max_tokens": 4096,
                    "system": RECIPE_REGENERATION_SYSTEM_PROMPT,
                },
            )

            return Recipe.model_validate(validated)

        except anthropic.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class ServiceUnavailableError(Exception):
    """AI service is temporarily unavailable."""

    pass


class RateLimitError(Exception):
    """Rate limit exceeded."""

    pass


class InvalidAIResponseError(ValueError):
    """AI answered, but never in the shape we asked for."""

    pass
