"""
AI prompt templates for ingredient extraction, weekly planning, recipe
regeneration and recipe photos.

Instructions are written in English; every user-facing field the model
produces (ingredient names, recipe text) must be in Bahasa Indonesia because
that is what the app shows.
"""

from mealsnap.schemas.plan import WEEKDAYS, DailyMeal, DietaryPreferences, Ingredient

# =============================================================================
# INGREDIENT EXTRACTION (vision)
# =============================================================================

INGREDIENT_EXTRACTION_SYSTEM_PROMPT = """You are a food recognition expert and nutritionist.

TASK: Look at ALL the photos of a fridge, pantry, kitchen counter or table and list the food ingredients you can see.

GUIDELINES:
1. Identify every food item visible across ALL images.
2. Estimate the amount or weight of each item (e.g. "2 buah", "sekitar 250g", "1 ikat", "6 butir").
3. Merge the results into ONE list of unique items: if the same item appears in several photos, list it once with a combined estimate.
4. Ignore non-food items (containers, appliances, utensils, packaging with no visible content).
5. Write names and quantities in Bahasa Indonesia.

OUTPUT FORMAT (JSON only, no markdown code blocks):
{
  "ingredients": [
    {"name": "Telur", "quantity": "sekitar 6 butir"},
    {"name": "Wortel", "quantity": "2 buah"},
    {"name": "Dada Ayam", "quantity": "sekitar 500g"}
  ]
}

If you cannot see any food, return {"ingredients": []}."""

INGREDIENT_EXTRACTION_USER_TEXT = (
    "Identify all food ingredients in these photos and estimate their quantities."
)

# =============================================================================
# WEEKLY MEAL PLAN + SINGLE RECIPE
# =============================================================================

RECIPE_JSON_FORMAT = """{
  "name": "Nasi Goreng Telur Wortel",
  "description": "Short, appetizing description of the dish",
  "ingredients": ["2 butir telur", "1 buah wortel, potong dadu", "..."],
  "instructions": ["Step 1 ...", "Step 2 ..."],
  "cook_time": "30 menit",
  "nutrition": {
    "calories": "450 kcal",
    "protein": "30g",
    "carbohydrate": "40g",
    "fat": "15g"
  },
  "tips": ["One or two useful cooking tips"],
  "serving_suggestions": ["One or two serving ideas: side dish or garnish"]
}"""

MEAL_PLAN_SYSTEM_PROMPT = f"""You are a skilled Indonesian nutritionist and home cook.

TASK: Create a 7-day DINNER plan (Senin through Minggu) from the user's available ingredients. One recipe per day: simple, tasty and suitable for a family.

FOR EVERY RECIPE INCLUDE:
1. Estimated nutrition per serving (calories, protein, carbohydrate, fat).
2. One or two relevant, practical cooking tips.
3. One or two serving suggestions (side dish or garnish).

RULES:
- Respect the user's dietary preferences strictly.
- Take the available quantities into account so the plan is realistic.
- Do not repeat the same dish twice in one week.
- Write all recipe text in Bahasa Indonesia.
- Use these day labels exactly: {", ".join(WEEKDAYS)}.

OUTPUT FORMAT (JSON only, no markdown code blocks):
{{
  "days": [
    {{"day": "Senin", "recipe": {RECIPE_JSON_FORMAT}}},
    ...
  ]
}}"""

RECIPE_REGENERATION_SYSTEM_PROMPT = f"""You are a skilled Indonesian nutritionist and home cook.

TASK: Replace ONE dinner recipe in an existing weekly plan with a NEW and DIFFERENT recipe.

RULES:
- The new recipe must differ from the recipe it replaces.
- Avoid anything similar to the other recipes already planned this week.
- Keep it simple, tasty and suitable for a family.
- Respect the user's dietary preferences strictly.
- Include nutrition per serving, one or two cooking tips and one or two serving suggestions.
- Write all recipe text in Bahasa Indonesia.

OUTPUT FORMAT (JSON only, no markdown code blocks):
{RECIPE_JSON_FORMAT}"""

STRICT_INGREDIENTS_INSTRUCTION = (
    "IMPORTANT: Use ONLY ingredients from the list above. "
    "Do not suggest any ingredient that is not on the list."
)

FLEXIBLE_INGREDIENTS_INSTRUCTION = (
    "Make the most of the available ingredients. You may add a few common "
    "extra ingredients where a recipe needs them to be complete."
)

NO_PREFERENCES_TEXT = "No special dietary preferences."

# =============================================================================
# RECIPE PHOTO
# =============================================================================

RECIPE_IMAGE_PROMPT = (
    "A photorealistic, mouth-watering close-up photo of the Indonesian dish: {recipe_name}. "
    "Served on a beautiful ceramic plate with fresh garnish, soft studio lighting."
)


def _format_ingredients(ingredients: list[Ingredient]) -> str:
    return ", ".join(i.label() for i in ingredients)


def _format_preferences(preferences: DietaryPreferences) -> str:
    labels = preferences.active_labels()
    if not labels:
        return NO_PREFERENCES_TEXT
    return f"Take these dietary preferences into account: {', '.join(labels)}."


def _strictness_instruction(strict: bool) -> str:
    return STRICT_INGREDIENTS_INSTRUCTION if strict else FLEXIBLE_INGREDIENTS_INSTRUCTION


def build_meal_plan_request(
    ingredients: list[Ingredient], preferences: DietaryPreferences, strict: bool
) -> str:
    """User message for a full 7-day plan."""
    return (
        f"Available ingredients and quantities: {_format_ingredients(ingredients)}.\n"
        f"{_format_preferences(preferences)}\n\n"
        f"Create the 7-day dinner plan.\n"
        f"{_strictness_instruction(strict)}"
    )


def build_regeneration_request(
    ingredients: list[Ingredient],
    preferences: DietaryPreferences,
    strict: bool,
    meal_plan: list[DailyMeal],
    day: str,
) -> str:
    """User message asking for one replacement recipe for `day`."""
    current = next((m.recipe.name for m in meal_plan if m.day == day), None)
    others = [m.recipe.name for m in meal_plan if m.day != day]

    lines = [
        f"Available ingredients: {_format_ingredients(ingredients)}.",
        _format_preferences(preferences),
        "",
        f"Create one NEW and DIFFERENT dinner recipe for {day}.",
    ]
    if current:
        lines.append(
            f'The current recipe for that day is "{current}", so give something different.'
        )
    if others:
        lines.append(
            f"Avoid recipes similar to the ones already planned this week: {', '.join(others)}."
        )
    lines.append(_strictness_instruction(strict))
    return "\n".join(lines)
