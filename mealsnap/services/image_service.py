"""
Recipe photo generation via the OpenAI Images API.

One call, one image, returned as a data URI so the caller can cache it on the
Recipe and never ask again for the same dish.
"""

import logging

import httpx
import openai
from openai import AsyncOpenAI

from mealsnap.config import settings
from mealsnap.services.ai_service import (
    InvalidAIResponseError,
    RateLimitError,
    ServiceUnavailableError,
)
from mealsnap.services.prompts import RECIPE_IMAGE_PROMPT

logger = logging.getLogger(__name__)


class RecipeImageService:
    """Turns a recipe name into a photo."""

    def __init__(self):
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=httpx.Timeout(timeout=settings.image_timeout, connect=10),
            max_retries=1,
        )
        self.model = settings.image_model
        self.size = settings.image_size

    def _request_params(self, recipe_name: str) -> tuple[dict, str]:
        params = {
            "model": self.model,
            "prompt": RECIPE_IMAGE_PROMPT.format(recipe_name=recipe_name),
            "n": 1,
            "size": self.size,
        }
        # DALL-E returns URLs unless asked; gpt-image models always return base64
        if self.model.startswith("dall-e"):
            params["response_format"] = "b64_json"
            return params, "image/png"
        params["output_format"] = "jpeg"
        return params, "image/jpeg"

    async def generate_recipe_image(self, recipe_name: str) -> str:
        """
        Generate a photo of `recipe_name`.

        Returns:
            "data:image/...;base64,..." URI

        Raises:
            ServiceUnavailableError: Provider down or unreachable
            RateLimitError: Too many requests
            InvalidAIResponseError: Response carried no image data
            ValueError: Request rejected (bad prompt, bad size, ...)
        """
        params, mime_type = self._request_params(recipe_name)

        try:
            response = await self.client.images.generate(**params)
        except openai.APIConnectionError as e:
            raise ServiceUnavailableError("Image service temporarily unavailable") from e
        except openai.RateLimitError as e:
            raise RateLimitError(
                "Too many requests, please try again in 1 minute"
            ) from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("Image service error") from e
            raise ValueError(f"Request error: {e.message}") from e

        if not response.data or not response.data[0].b64_json:
            raise InvalidAIResponseError(f"No image data returned for {recipe_name!r}")

        logger.info("Generated photo for recipe %r with %s", recipe_name, self.model)
        return f"data:{mime_type};base64,{response.data[0].b64_json}"
