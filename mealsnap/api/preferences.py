"""API endpoints for dietary preferences."""

from fastapi import APIRouter, Depends

from mealsnap.api.dependencies import get_workflow
from mealsnap.schemas.plan import DietaryPreferences
from mealsnap.services.workflow import MealPlanWorkflow

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("")
async def get_preferences(workflow: MealPlanWorkflow = Depends(get_workflow)):
    return workflow.session.preferences.model_dump(by_alias=True)


@router.put("")
async def update_preferences(
    preferences: DietaryPreferences,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    """Replace preferences for this session and persist them."""
    workflow.update_preferences(preferences)
    return workflow.session.preferences.model_dump(by_alias=True)
