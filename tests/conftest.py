"""
Test configuration and fixtures for MealSnap.

- In-memory SQLite engine per test (preferences table only)
- Mock AI adapters with call tracking
- A workflow wired to the mocks
- TestClient with the session registry overridden
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mealsnap.models  # noqa: F401  (registers tables on Base)
from mealsnap.api.dependencies import WorkflowRegistry, get_registry
from mealsnap.database import Base
from mealsnap.main import app
from mealsnap.services.preferences_store import PreferencesStore
from mealsnap.services.workflow import MealPlanWorkflow
from tests.factories import make_ingredients
from tests.fixtures.mocks import MockClaudeService, MockRecipeImageService


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_engine():
    """Fresh in-memory database; StaticPool keeps one shared connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def preferences_store(session_factory) -> PreferencesStore:
    return PreferencesStore(session_factory=session_factory)


# =============================================================================
# AI Mocks
# =============================================================================


@pytest.fixture
def mock_claude_service() -> MockClaudeService:
    """Provide a fresh mock claude service for each test."""
    return MockClaudeService()


@pytest.fixture
def mock_image_service() -> MockRecipeImageService:
    return MockRecipeImageService()


# =============================================================================
# Workflow Fixtures
# =============================================================================


@pytest.fixture
def workflow(mock_claude_service, mock_image_service, preferences_store) -> MealPlanWorkflow:
    return MealPlanWorkflow(mock_claude_service, mock_image_service, preferences_store)


@pytest.fixture
def sample_ingredients():
    return make_ingredients()


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def registry(mock_claude_service, mock_image_service, preferences_store) -> WorkflowRegistry:
    return WorkflowRegistry(mock_claude_service, mock_image_service, preferences_store)


@pytest.fixture
def client(registry, monkeypatch) -> Generator[TestClient, None, None]:
    """
    TestClient with the workflow registry override.

    Startup table creation is skipped; the registry already points at the
    in-memory database.
    """
    monkeypatch.setattr("mealsnap.main.init_db", lambda: None)
    app.dependency_overrides[get_registry] = lambda: registry

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
