"""PreferenceEntry model: a tiny key-value table for persisted user settings."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from mealsnap.database import Base


class PreferenceEntry(Base):
    """One serialized settings document per key (e.g. dietary preferences)."""

    __tablename__ = "preference_entries"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PreferenceEntry(key={self.key})>"
