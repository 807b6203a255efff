"""MealSnap: a weekly dinner plan from a photo of your kitchen."""

__version__ = "0.1.0"
