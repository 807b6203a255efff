"""API endpoints for the photo -> ingredients -> weekly plan workflow.

Every route returns the session snapshot so the client can re-render from a
single source of truth. Transition misuse (409) and unknown days (404) are
translated by the exception handlers in mealsnap.main.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from mealsnap.api.dependencies import get_workflow
from mealsnap.schemas.plan import Ingredient
from mealsnap.services.workflow import MealPlanWorkflow

router = APIRouter(prefix="/plan", tags=["plan"])


class IngredientListUpdate(BaseModel):
    ingredients: list[Ingredient]


class IngredientCreate(BaseModel):
    name: str
    quantity: str


class IngredientPatch(BaseModel):
    name: Optional[str] = None
    quantity: Optional[str] = None


class SwipeRequest(BaseModel):
    index: int


@router.get("/state")
async def get_state(workflow: MealPlanWorkflow = Depends(get_workflow)):
    """Current session snapshot."""
    return workflow.snapshot()


@router.post("/images")
async def submit_images(
    files: Optional[list[UploadFile]] = File(None),
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    """
    Upload one or more kitchen photos and extract ingredients.

    Failures end in `initial` with `error` set; they are not HTTP errors.
    """
    await workflow.submit_images(files or [])
    return workflow.snapshot()


# =============================================================================
# INGREDIENT EDITING
# =============================================================================


@router.put("/ingredients")
async def replace_ingredients(
    body: IngredientListUpdate,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    workflow.replace_ingredients(body.ingredients)
    return workflow.snapshot()


@router.post("/ingredients")
async def add_ingredient(
    body: IngredientCreate,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    try:
        workflow.add_ingredient(body.name, body.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return workflow.snapshot()


@router.patch("/ingredients/{index}")
async def update_ingredient(
    index: int,
    body: IngredientPatch,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    try:
        workflow.update_ingredient(index, name=body.name, quantity=body.quantity)
    except IndexError:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return workflow.snapshot()


@router.delete("/ingredients/{index}")
async def remove_ingredient(
    index: int,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    try:
        workflow.remove_ingredient(index)
    except IndexError:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    return workflow.snapshot()


# =============================================================================
# PLAN GENERATION
# =============================================================================


@router.post("/confirm")
async def confirm_ingredients(workflow: MealPlanWorkflow = Depends(get_workflow)):
    """Strict generation; may land in `confirm_add_ingredients`."""
    await workflow.confirm_ingredients()
    return workflow.snapshot()


@router.post("/additional-ingredients/accept")
async def accept_additional_ingredients(
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    await workflow.accept_additional_ingredients()
    return workflow.snapshot()


@router.post("/additional-ingredients/decline")
async def decline_additional_ingredients(
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    workflow.decline_additional_ingredients()
    return workflow.snapshot()


# =============================================================================
# PLAN BROWSING
# =============================================================================


@router.post("/days/{day}/select")
async def select_recipe(day: str, workflow: MealPlanWorkflow = Depends(get_workflow)):
    """
    Open a recipe. Photo generation, if needed, continues after the response;
    poll /plan/state until `is_generating_image` clears.
    """
    workflow.select_recipe(day)
    return workflow.snapshot()


@router.post("/close-recipe")
async def close_recipe(workflow: MealPlanWorkflow = Depends(get_workflow)):
    workflow.close_recipe()
    return workflow.snapshot()


@router.post("/days/{day}/regenerate")
async def regenerate_recipe(
    day: str, workflow: MealPlanWorkflow = Depends(get_workflow)
):
    await workflow.regenerate_recipe(day)
    return workflow.snapshot()


@router.post("/days/{day}/swipe")
async def swipe_recipe(
    day: str,
    body: SwipeRequest,
    workflow: MealPlanWorkflow = Depends(get_workflow),
):
    """Switch to an earlier option. Out-of-range indices are ignored."""
    workflow.swipe_recipe(day, body.index)
    return workflow.snapshot()


@router.get("/days/{day}/missing-ingredients")
async def get_missing_ingredients(
    day: str, workflow: MealPlanWorkflow = Depends(get_workflow)
):
    return {"day": day, "missing": workflow.missing_ingredients(day)}


@router.get("/nutrition")
async def get_nutrition_summary(workflow: MealPlanWorkflow = Depends(get_workflow)):
    return workflow.nutrition_summary().to_dict()


@router.get("/export")
async def export_plan(workflow: MealPlanWorkflow = Depends(get_workflow)):
    """Download the current plan as Markdown."""
    return Response(
        content=workflow.export_markdown(),
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="rencana-makan.md"'},
    )


# =============================================================================
# SESSION
# =============================================================================


@router.post("/reset")
async def reset(workflow: MealPlanWorkflow = Depends(get_workflow)):
    workflow.reset()
    return workflow.snapshot()


@router.post("/dismiss-error")
async def dismiss_error(workflow: MealPlanWorkflow = Depends(get_workflow)):
    workflow.dismiss_error()
    return workflow.snapshot()
