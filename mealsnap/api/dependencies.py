"""FastAPI dependencies for per-browser workflow sessions."""
import logging
import secrets
import time
from typing import Optional

from fastapi import Depends, Request, Response

from mealsnap.config import settings
from mealsnap.services.ai_service import ClaudeService
from mealsnap.services.image_service import RecipeImageService
from mealsnap.services.preferences_store import PreferencesStore
from mealsnap.services.workflow import MealPlanWorkflow

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """
    In-process map of session token -> MealPlanWorkflow.

    Sessions idle for longer than `max_age` seconds are dropped the next time
    the registry is touched. Nothing survives a restart except preferences,
    which live in the database.
    """

    def __init__(
        self,
        ai_service: ClaudeService,
        image_service: RecipeImageService,
        preferences_store: Optional[PreferencesStore] = None,
        max_age: Optional[int] = None,
    ):
        self.ai_service = ai_service
        self.image_service = image_service
        self.preferences_store = preferences_store
        self.max_age = max_age or settings.session_max_age
        self._sessions: dict[str, tuple[MealPlanWorkflow, float]] = {}

    def __len__(self):
        return len(self._sessions)

    def _expire(self, now: float):
        stale = [
            token
            for token, (_, last_seen) in self._sessions.items()
            if now - last_seen > self.max_age
        ]
        for token in stale:
            del self._sessions[token]
        if stale:
            logger.info("Expired %d idle workflow session(s)", len(stale))

    def get_or_create(self, token: Optional[str]) -> tuple[str, MealPlanWorkflow]:
        """Return the workflow for `token`, starting a new session if unknown."""
        now = time.monotonic()
        self._expire(now)

        if token and token in self._sessions:
            workflow, _ = self._sessions[token]
        else:
            token = secrets.token_urlsafe(32)
            workflow = MealPlanWorkflow(
                self.ai_service, self.image_service, self.preferences_store
            )
            logger.debug("Started workflow session %s...", token[:8])

        self._sessions[token] = (workflow, now)
        return token, workflow


_registry: Optional[WorkflowRegistry] = None


def get_registry() -> WorkflowRegistry:
    """Process-wide registry, created on first use."""
    global _registry
    if _registry is None:
        _registry = WorkflowRegistry(
            ClaudeService(), RecipeImageService(), PreferencesStore()
        )
    return _registry


async def get_workflow(
    request: Request,
    response: Response,
    registry: WorkflowRegistry = Depends(get_registry),
) -> MealPlanWorkflow:
    """
    Workflow for the calling browser, keyed by the session cookie.

    The cookie is (re)issued on every response so idle expiry slides.
    """
    token, workflow = registry.get_or_create(
        request.cookies.get(settings.session_cookie_name)
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return workflow
