from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from mealsnap.config import settings

# SQLite needs this to be shared across the threadpool FastAPI runs sync deps in
_connect_args: dict = {}
if settings.database_url.startswith("sqlite"):
    _connect_args["check_same_thread"] = False

engine = create_engine(settings.database_url, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def init_db():
    """Create tables that do not exist yet."""
    from mealsnap import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
