"""CLI commands for MealSnap."""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from mealsnap.database import init_db
from mealsnap.schemas.plan import DietaryPreferences
from mealsnap.services.ai_service import ClaudeService
from mealsnap.services.image_service import RecipeImageService
from mealsnap.services.preferences_store import PreferencesStore
from mealsnap.services.workflow import MealPlanWorkflow, WorkflowState


class LocalImageFile:
    """A photo on disk, shaped like an uploaded file."""

    def __init__(self, path: Path):
        self.path = path
        self.filename = path.name
        self.content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    async def read(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)


def print_preferences(prefs: DietaryPreferences) -> None:
    labels = prefs.active_labels()
    print(f"Preferences: {', '.join(labels) if labels else 'none'}")


async def run_plan(
    images: list[str],
    allow_extra: bool = False,
    output: str | None = None,
    workflow: MealPlanWorkflow | None = None,
) -> int:
    """
    Photos in, Markdown plan out.

    Returns:
        Process exit code
    """
    if workflow is None:
        init_db()
        workflow = MealPlanWorkflow(
            ClaudeService(), RecipeImageService(), PreferencesStore()
        )

    missing = [p for p in images if not Path(p).is_file()]
    if missing:
        print(f"Error: File not found: {', '.join(missing)}")
        return 1

    print_preferences(workflow.session.preferences)
    print(f"Reading ingredients from {len(images)} photo(s)...")
    await workflow.submit_images([LocalImageFile(Path(p)) for p in images])
    if workflow.state != WorkflowState.EDITING_INGREDIENTS:
        print(f"Error: {workflow.session.error}")
        return 1

    for ingredient in workflow.session.ingredients:
        print(f"  - {ingredient.label()}")

    print("Generating a weekly plan from these ingredients only...")
    await workflow.confirm_ingredients()

    if workflow.state == WorkflowState.CONFIRM_ADD_INGREDIENTS:
        if not allow_extra:
            print(
                "Error: No plan could be made from these ingredients alone. "
                "Re-run with --allow-extra to let recipes use common extra ingredients."
            )
            return 1
        print("Retrying with common extra ingredients allowed...")
        await workflow.accept_additional_ingredients()

    if workflow.state != WorkflowState.SHOWING_PLAN:
        print(f"Error: {workflow.session.error}")
        return 1

    markdown = workflow.export_markdown()
    if output:
        Path(output).write_text(markdown, encoding="utf-8")
        print(f"Plan for {len(workflow.session.meal_plan)} day(s) written to {output}")
    else:
        print()
        print(markdown)
    return 0


def update_preferences(
    store: PreferencesStore,
    vegetarian: bool | None = None,
    gluten_free: bool | None = None,
    dairy_free: bool | None = None,
    other: str | None = None,
) -> DietaryPreferences:
    """Apply the given flags on top of the stored preferences and save."""
    prefs = store.load()
    changes = {
        field: value
        for field, value in (
            ("vegetarian", vegetarian),
            ("gluten_free", gluten_free),
            ("dairy_free", dairy_free),
            ("lainnya", other),
        )
        if value is not None
    }
    if changes:
        prefs = prefs.model_copy(update=changes)
        if not store.save(prefs):
            print("Warning: preferences could not be saved.")
    return prefs


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="MealSnap CLI")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # plan command
    plan_parser = subparsers.add_parser(
        "plan", help="Build a weekly dinner plan from ingredient photos"
    )
    plan_parser.add_argument("images", nargs="+", help="Photo(s) of your ingredients")
    plan_parser.add_argument(
        "--allow-extra",
        action="store_true",
        help="Allow common extra ingredients if the photos alone are not enough",
    )
    plan_parser.add_argument(
        "--output", "-o", help="Write the Markdown plan here instead of stdout"
    )

    # preferences command
    prefs_parser = subparsers.add_parser(
        "preferences", help="Show or update dietary preferences"
    )
    prefs_parser.add_argument(
        "--vegetarian", action=argparse.BooleanOptionalAction, default=None
    )
    prefs_parser.add_argument(
        "--gluten-free", action=argparse.BooleanOptionalAction, default=None
    )
    prefs_parser.add_argument(
        "--dairy-free", action=argparse.BooleanOptionalAction, default=None
    )
    prefs_parser.add_argument("--other", help="Other restrictions, free text")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "plan":
        sys.exit(asyncio.run(run_plan(args.images, args.allow_extra, args.output)))
    elif args.command == "preferences":
        init_db()
        prefs = update_preferences(
            PreferencesStore(),
            vegetarian=args.vegetarian,
            gluten_free=args.gluten_free,
            dairy_free=args.dairy_free,
            other=args.other,
        )
        print_preferences(prefs)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
