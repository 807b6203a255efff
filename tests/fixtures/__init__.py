"""Test fixtures for MealSnap."""

from tests.fixtures.mocks import MockClaudeService, MockRecipeImageService

__all__ = [
    "MockClaudeService",
    "MockRecipeImageService",
]
