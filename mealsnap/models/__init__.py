"""
Database models for MealSnap.

Import all models here so Base.metadata sees them before create_all().
"""

from mealsnap.database import Base
from mealsnap.models.preference_entry import PreferenceEntry

__all__ = [
    "Base",
    "PreferenceEntry",
]
