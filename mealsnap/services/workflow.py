"""
Meal plan workflow: the session state machine.

Sequences the AI adapters for one user session:

    initial -> processing_receipt -> editing_ingredients -> generating_plan
        -> showing_plan
                                     \\-> confirm_add_ingredients (strict plan
                                          failed) -> flexible generation

Every adapter call is caught here and turned into a transition and/or the
single error banner. Each in-flight request remembers the session
`generation` it was issued under; responses that come back after a reset or a
new plan are dropped instead of being merged into unrelated state.

All mutation happens on the event loop thread and each successful response
applies its updates without awaiting in between, so plan, option history and
active index always change together.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from mealsnap.schemas.plan import DailyMeal, DietaryPreferences, Ingredient, Recipe
from mealsnap.services.ai_service import (
    ClaudeService,
    InvalidAIResponseError,
    RateLimitError,
    ServiceUnavailableError,
)
from mealsnap.services.image_service import RecipeImageService
from mealsnap.services.plan_export import render_plan_markdown
from mealsnap.services.plan_insights import (
    NutritionTotals,
    missing_ingredients,
    summarize_nutrition,
)
from mealsnap.services.preferences_store import PreferencesStore
from mealsnap.services.upload_service import (
    UploadService,
    UploadValidationError,
    upload_service,
)

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    INITIAL = "initial"
    PROCESSING_RECEIPT = "processing_receipt"
    EDITING_INGREDIENTS = "editing_ingredients"
    CONFIRM_ADD_INGREDIENTS = "confirm_add_ingredients"
    GENERATING_PLAN = "generating_plan"
    SHOWING_PLAN = "showing_plan"


# Error banner texts (shown to the user as-is)
ERROR_NO_FILES = "Pilih setidaknya satu foto bahan makanan."
ERROR_INVALID_FILE = (
    "Gagal membaca file {filename}. Gunakan foto JPG, PNG, atau WEBP "
    "yang tidak kosong dan tidak lebih dari {max_mb} MB."
)
ERROR_UNREADABLE_FILE = "Gagal membaca file {filename}. Silakan coba lagi."
ERROR_NO_INGREDIENTS_FOUND = (
    "Tidak ada bahan makanan yang dapat ditemukan. Coba lagi dengan gambar yang lebih jelas."
)
ERROR_EXTRACTION_FAILED = (
    "Gagal mengenali bahan makanan dari foto. Coba lagi dengan gambar yang lebih jelas."
)
ERROR_EMPTY_INGREDIENTS = "Daftar bahan masih kosong. Tambahkan setidaknya satu bahan."
ERROR_PLAN_FAILED = (
    "Tidak dapat membuat rencana makan dari bahan yang diberikan. "
    "Coba tambahkan lebih banyak bahan."
)
ERROR_REGENERATE_FAILED = "Gagal membuat resep baru untuk hari {day}. Silakan coba lagi."
ERROR_SERVICE_UNAVAILABLE = "Layanan AI sedang tidak tersedia. Silakan coba lagi sebentar lagi."
ERROR_RATE_LIMITED = "Terlalu banyak permintaan. Tunggu satu menit lalu coba lagi."


class InvalidTransitionError(Exception):
    """Operation is not allowed in the current workflow state."""

    pass


class UnknownDayError(LookupError):
    """No plan entry for the requested day label."""

    pass


class SessionState(BaseModel):
    """Everything one user session owns. Replaced wholesale on reset()."""

    state: WorkflowState = WorkflowState.INITIAL
    ingredients: list[Ingredient] = []
    preferences: DietaryPreferences = Field(default_factory=DietaryPreferences)
    meal_plan: list[DailyMeal] = []
    selected: Optional[DailyMeal] = None

    # Per-day append-only option history and the index shown in the plan
    recipe_options: dict[str, list[Recipe]] = {}
    active_option: dict[str, int] = {}

    regenerating_days: set[str] = set()
    is_generating_image: bool = False

    # Strictness the current plan was generated with; regeneration reuses it
    use_only_provided_ingredients: bool = True

    error: Optional[str] = None
    generation: int = 0


def _describe_failure(error: Exception, fallback: str) -> str:
    if isinstance(error, ServiceUnavailableError):
        return ERROR_SERVICE_UNAVAILABLE
    if isinstance(error, RateLimitError):
        return ERROR_RATE_LIMITED
    return fallback


class MealPlanWorkflow:
    """State machine for one photo-to-weekly-plan session."""

    def __init__(
        self,
        ai_service: ClaudeService,
        image_service: RecipeImageService,
        preferences_store: Optional[PreferencesStore] = None,
        uploads: Optional[UploadService] = None,
    ):
        self.ai_service = ai_service
        self.image_service = image_service
        self.preferences_store = preferences_store
        self.uploads = uploads or upload_service
        self.session = SessionState()
        self._background_tasks: set[asyncio.Task] = set()

        # Load-once; later changes flow one way, session -> store
        if preferences_store is not None:
            self.session.preferences = preferences_store.load()

    # =========================================================================
    # HELPERS
    # =========================================================================

    @property
    def state(self) -> WorkflowState:
        return self.session.state

    def _require(self, *allowed: WorkflowState, action: str):
        if self.session.state not in allowed:
            raise InvalidTransitionError(
                f"Cannot {action} while {self.session.state.value}"
            )

    def _is_current(self, generation: int) -> bool:
        return generation == self.session.generation

    def _fail_to(self, state: WorkflowState, message: str):
        self.session.error = message
        self.session.state = state

    def _find_meal(self, day: str) -> tuple[int, DailyMeal]:
        for index, meal in enumerate(self.session.meal_plan):
            if meal.day == day:
                return index, meal
        raise UnknownDayError(f"No recipe planned for {day!r}")

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def wait_for_background_tasks(self):
        """Wait for pending image requests (CLI and tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # =========================================================================
    # PHOTOS -> INGREDIENTS
    # =========================================================================

    async def submit_images(self, files: list) -> None:
        """
        Read the uploaded photos and extract ingredients from them.

        Ends in editing_ingredients with a non-empty list, or back in initial
        with the error banner set. Extraction is never retried automatically.
        """
        self._require(WorkflowState.INITIAL, action="submit images")

        if not files:
            self.session.error = ERROR_NO_FILES
            return

        # Start every read before anything else happens; upload handles can
        # be closed once the request moves on
        reads = [asyncio.ensure_future(self.uploads.read_image(f)) for f in files]

        generation = self.session.generation
        self.session.error = None
        self.session.state = WorkflowState.PROCESSING_RECEIPT

        results = await asyncio.gather(*reads, return_exceptions=True)
        failures = [
            (f, r) for f, r in zip(files, results) if isinstance(r, Exception)
        ]
        if failures:
            file, error = failures[0]
            filename = getattr(file, "filename", None) or "foto"
            if isinstance(error, UploadValidationError):
                logger.info("Rejected upload: %s", error)
                message = ERROR_INVALID_FILE.format(
                    filename=filename, max_mb=self.uploads.max_bytes // (1024 * 1024)
                )
            else:
                logger.warning("Could not read upload %s: %s", filename, error)
                message = ERROR_UNREADABLE_FILE.format(filename=filename)
            if self._is_current(generation):
                self._fail_to(WorkflowState.INITIAL, message)
            return

        try:
            ingredients = await self.ai_service.extract_ingredients(list(results))
        except Exception as e:
            logger.warning("Ingredient extraction failed: %s", e)
            if self._is_current(generation):
                self._fail_to(
                    WorkflowState.INITIAL, _describe_failure(e, ERROR_EXTRACTION_FAILED)
                )
            return

        if not self._is_current(generation):
            logger.info("Discarding ingredient extraction for a session that was reset")
            return

        if not ingredients:
            logger.info("No ingredients found in %d photo(s)", len(files))
            self._fail_to(WorkflowState.INITIAL, ERROR_NO_INGREDIENTS_FOUND)
            return

        self.session.ingredients = ingredients
        self.session.state = WorkflowState.EDITING_INGREDIENTS

    # =========================================================================
    # INGREDIENT EDITING
    # =========================================================================

    def replace_ingredients(self, ingredients: list[Ingredient]):
        self._require(WorkflowState.EDITING_INGREDIENTS, action="edit ingredients")
        self.session.ingredients = list(ingredients)

    def add_ingredient(self, name: str, quantity: str) -> Ingredient:
        self._require(WorkflowState.EDITING_INGREDIENTS, action="edit ingredients")
        name, quantity = name.strip(), quantity.strip()
        if not name or not quantity:
            raise ValueError("Ingredient name and quantity are both required")
        ingredient = Ingredient(name=name, quantity=quantity)
        self.session.ingredients.append(ingredient)
        return ingredient

    def update_ingredient(
        self, index: int, name: Optional[str] = None, quantity: Optional[str] = None
    ) -> Ingredient:
        self._require(WorkflowState.EDITING_INGREDIENTS, action="edit ingredients")
        current = self.session.ingredients[self._check_index(index)]
        name = current.name if name is None else name.strip()
        quantity = current.quantity if quantity is None else quantity.strip()
        if not name or not quantity:
            raise ValueError("Ingredient name and quantity are both required")
        updated = Ingredient(name=name, quantity=quantity)
        self.session.ingredients[index] = updated
        return updated

    def remove_ingredient(self, index: int) -> Ingredient:
        self._require(WorkflowState.EDITING_INGREDIENTS, action="edit ingredients")
        return self.session.ingredients.pop(self._check_index(index))

    def _check_index(self, index: int) -> int:
        # No negative indexing from the outside
        if not 0 <= index < len(self.session.ingredients):
            raise IndexError(f"No ingredient at position {index}")
        return index

    def back_to_start(self):
        self.reset()

    # =========================================================================
    # INGREDIENTS -> PLAN
    # =========================================================================

    async def confirm_ingredients(self) -> None:
        """
        Generate the plan using only the confirmed ingredients.

        A failed or empty strict plan is expected: the session moves to
        confirm_add_ingredients so the user can allow extra ingredients.
        """
        self._require(WorkflowState.EDITING_INGREDIENTS, action="confirm ingredients")

        if not self.session.ingredients:
            self.session.error = ERROR_EMPTY_INGREDIENTS
            return

        generation = self.session.generation
        self.session.error = None
        self.session.state = WorkflowState.GENERATING_PLAN

        try:
            plan = await self.ai_service.generate_meal_plan(
                list(self.session.ingredients), self.session.preferences, strict=True
            )
        except InvalidAIResponseError as e:
            logger.warning("Strict meal plan response was unusable: %s", e)
            plan = []
        except Exception as e:
            logger.warning("Strict meal plan generation failed: %s", e)
            plan = []

        if not self._is_current(generation):
            logger.info("Discarding strict meal plan for a session that was reset")
            return

        if not plan:
            logger.info("Strict plan unavailable, asking user about extra ingredients")
            self.session.state = WorkflowState.CONFIRM_ADD_INGREDIENTS
            return

        self._install_plan(plan, strict=True)

    def decline_additional_ingredients(self):
        """User keeps the strict constraint: back to the editor, list unchanged."""
        self._require(
            WorkflowState.CONFIRM_ADD_INGREDIENTS, action="decline extra ingredients"
        )
        self.session.state = WorkflowState.EDITING_INGREDIENTS

    async def accept_additional_ingredients(self) -> None:
        await self.generate_plan_flexible()

    async def generate_plan_flexible(self) -> None:
        """
        Generate the plan allowing common extra ingredients.

        Terminal for this path: failure returns to editing_ingredients with
        the error banner, no further automatic retry.
        """
        self._require(
            WorkflowState.CONFIRM_ADD_INGREDIENTS, action="generate a flexible plan"
        )

        generation = self.session.generation
        self.session.error = None
        self.session.state = WorkflowState.GENERATING_PLAN

        try:
            plan = await self.ai_service.generate_meal_plan(
                list(self.session.ingredients), self.session.preferences, strict=False
            )
        except Exception as e:
            logger.warning("Flexible meal plan generation failed: %s", e)
            if self._is_current(generation):
                self._fail_to(
                    WorkflowState.EDITING_INGREDIENTS,
                    _describe_failure(e, ERROR_PLAN_FAILED),
                )
            return

        if not self._is_current(generation):
            logger.info("Discarding flexible meal plan for a session that was reset")
            return

        if not plan:
            logger.warning("Flexible meal plan came back empty")
            self._fail_to(WorkflowState.EDITING_INGREDIENTS, ERROR_PLAN_FAILED)
            return

        self._install_plan(plan, strict=False)

    def _install_plan(self, plan: list[DailyMeal], strict: bool):
        meals = []
        seen = set()
        for meal in plan:
            if meal.day in seen:
                logger.warning("Dropping duplicate plan entry for %s", meal.day)
                continue
            seen.add(meal.day)
            meals.append(meal)

        # New plan, new generation: nothing issued for an older plan may land here
        self.session.generation += 1
        self.session.meal_plan = meals
        self.session.recipe_options = {meal.day: [meal.recipe] for meal in meals}
        self.session.active_option = {meal.day: 0 for meal in meals}
        self.session.regenerating_days = set()
        self.session.selected = None
        self.session.is_generating_image = False
        self.session.use_only_provided_ingredients = strict
        self.session.state = WorkflowState.SHOWING_PLAN

    # =========================================================================
    # PLAN BROWSING
    # =========================================================================

    def select_recipe(self, day: str) -> Optional[asyncio.Task]:
        """
        Open the detail view for `day`.

        Returns the background image task when a photo has to be generated,
        or None when the recipe already has one (no adapter call). Must be
        called from a running event loop.
        """
        self._require(WorkflowState.SHOWING_PLAN, action="select a recipe")
        _, meal = self._find_meal(day)
        self.session.selected = meal

        if meal.recipe.image_url:
            return None

        self.session.is_generating_image = True
        return self._track(
            asyncio.create_task(
                self._load_recipe_image(self.session.generation, day, meal.recipe.name)
            )
        )

    async def _load_recipe_image(self, generation: int, day: str, recipe_name: str):
        try:
            image_url = await self.image_service.generate_recipe_image(recipe_name)
        except Exception as e:
            # Not shown to the user; selecting the recipe again retries
            logger.warning(
                "Image generation failed for %s (%s): %s", day, recipe_name, e
            )
            return
        finally:
            if self._is_current(generation):
                self.session.is_generating_image = False

        if not self._is_current(generation):
            logger.info("Discarding image for %r from an earlier plan", recipe_name)
            return

        self._apply_recipe_image(day, recipe_name, image_url)

    def _apply_recipe_image(self, day: str, recipe_name: str, image_url: str):
        """Cache the photo on the plan entry, the option history and the open detail."""
        plan = self.session.meal_plan
        for index, meal in enumerate(plan):
            if meal.day == day and meal.recipe.name == recipe_name:
                plan[index] = DailyMeal(
                    day=day,
                    recipe=meal.recipe.model_copy(update={"image_url": image_url}),
                )

        options = self.session.recipe_options.get(day, [])
        for index, recipe in enumerate(options):
            if recipe.name == recipe_name:
                options[index] = recipe.model_copy(update={"image_url": image_url})

        selected = self.session.selected
        if selected and selected.day == day and selected.recipe.name == recipe_name:
            self.session.selected = DailyMeal(
                day=day,
                recipe=selected.recipe.model_copy(update={"image_url": image_url}),
            )

    def close_recipe(self):
        self.session.selected = None

    async def regenerate_recipe(self, day: str) -> Optional[Recipe]:
        """
        Ask for an alternative recipe for `day` and make it the active option.

        One regeneration per day at a time; other days stay usable. On
        failure the banner is set and plan/history are left untouched.

        Returns:
            The new recipe, or None if nothing was applied
        """
        self._require(WorkflowState.SHOWING_PLAN, action="regenerate a recipe")
        self._find_meal(day)

        if day in self.session.regenerating_days:
            logger.info("Regeneration for %s already in flight", day)
            return None

        generation = self.session.generation
        self.session.regenerating_days.add(day)

        try:
            recipe = await self.ai_service.regenerate_recipe(
                list(self.session.ingredients),
                self.session.preferences,
                self.session.use_only_provided_ingredients,
                list(self.session.meal_plan),
                day,
            )
        except Exception as e:
            logger.warning("Recipe regeneration failed for %s: %s", day, e)
            if self._is_current(generation):
                self.session.error = _describe_failure(
                    e, ERROR_REGENERATE_FAILED.format(day=day)
                )
            return None
        finally:
            if self._is_current(generation):
                self.session.regenerating_days.discard(day)

        if not self._is_current(generation):
            logger.info("Discarding regenerated recipe for %s from an earlier plan", day)
            return None

        index, meal = self._find_meal(day)
        options = self.session.recipe_options.setdefault(day, [meal.recipe])
        options.append(recipe)
        self.session.active_option[day] = len(options) - 1
        self.session.meal_plan[index] = DailyMeal(day=day, recipe=recipe)
        return recipe

    def swipe_recipe(self, day: str, index: int) -> bool:
        """
        Switch `day` back to a previously seen option. No network call.

        Out-of-range indices (and days without history) are ignored.

        Returns:
            True if the plan changed to option `index`
        """
        self._require(WorkflowState.SHOWING_PLAN, action="switch recipes")
        options = self.session.recipe_options.get(day)
        if not options or not 0 <= index < len(options):
            return False

        position, _ = self._find_meal(day)
        self.session.active_option[day] = index
        self.session.meal_plan[position] = DailyMeal(day=day, recipe=options[index])
        return True

    # =========================================================================
    # SESSION-WIDE
    # =========================================================================

    def reset(self):
        """Back to initial with a clean slate. Preferences survive."""
        self.session = SessionState(
            preferences=self.session.preferences,
            generation=self.session.generation + 1,
        )

    def dismiss_error(self):
        self.session.error = None

    def update_preferences(self, preferences: DietaryPreferences):
        """Replace preferences and persist them (write failures are only logged)."""
        self.session.preferences = preferences
        if self.preferences_store is not None:
            self.preferences_store.save(preferences)

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    def nutrition_summary(self) -> NutritionTotals:
        return summarize_nutrition(self.session.meal_plan)

    def missing_ingredients(self, day: str) -> list[str]:
        _, meal = self._find_meal(day)
        return missing_ingredients(meal.recipe, self.session.ingredients)

    def export_markdown(self) -> str:
        return render_plan_markdown(self.session.meal_plan)

    def snapshot(self) -> dict:
        """JSON-ready view of the session for the presentation layer."""
        data = self.session.model_dump(mode="json")
        data["regenerating_days"] = sorted(data["regenerating_days"])
        return data
