"""Markdown export of a weekly plan, one section per day."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from mealsnap.schemas.plan import DailyMeal
from mealsnap.services.plan_insights import summarize_nutrition

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
DEFAULT_TITLE = "Rencana Makan Malam Mingguan"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=False,  # Markdown output, not HTML
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def render_plan_markdown(meal_plan: list[DailyMeal], title: str = DEFAULT_TITLE) -> str:
    """Render the plan as a Markdown document. Does not modify the plan."""
    template = _env.get_template("plan_export.md.j2")
    return template.render(
        title=title,
        meal_plan=meal_plan,
        totals=summarize_nutrition(meal_plan),
    )
