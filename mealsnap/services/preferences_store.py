"""
Durable copy of the user's dietary preferences.

Loaded once when a workflow starts and written on every change. The store
never raises: a bad stored value falls back to defaults and a failed write is
only logged.
"""

import json
import logging
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mealsnap.config import settings
from mealsnap.database import SessionLocal
from mealsnap.models import PreferenceEntry
from mealsnap.schemas.plan import DietaryPreferences

logger = logging.getLogger(__name__)


class PreferencesStore:
    """Key-value persistence of DietaryPreferences under one fixed key."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        key: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.key = key or settings.preferences_key

    def load(self) -> DietaryPreferences:
        """
        Read stored preferences, or defaults if nothing usable is stored.

        The stored value must be a JSON object with at least a `vegetarian`
        field; anything else is treated as absent.
        """
        db = self.session_factory()
        try:
            entry = db.get(PreferenceEntry, self.key)
            if entry is None:
                return DietaryPreferences()
            raw = entry.value
        except SQLAlchemyError as e:
            logger.warning("Could not read preferences %r, using defaults: %s", self.key, e)
            return DietaryPreferences()
        finally:
            db.close()

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Stored preferences %r are not JSON, using defaults: %s", self.key, e)
            return DietaryPreferences()

        if not isinstance(data, dict) or "vegetarian" not in data:
            logger.warning("Stored preferences %r have an unexpected shape, using defaults", self.key)
            return DietaryPreferences()

        try:
            return DietaryPreferences.model_validate(data)
        except ValidationError as e:
            logger.warning("Stored preferences %r failed validation, using defaults: %s", self.key, e)
            return DietaryPreferences()

    def save(self, preferences: DietaryPreferences) -> bool:
        """
        Upsert the preferences document.

        Returns:
            True if written, False if the write failed (already logged)
        """
        value = preferences.model_dump_json(by_alias=True)
        db = self.session_factory()
        try:
            entry = db.get(PreferenceEntry, self.key)
            if entry is None:
                db.add(PreferenceEntry(key=self.key, value=value))
            else:
                entry.value = value
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not save preferences %r: %s", self.key, e)
            return False
        finally:
            db.close()
