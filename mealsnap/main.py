import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mealsnap import __version__
from mealsnap.api import plan, preferences
from mealsnap.database import init_db
from mealsnap.services.workflow import InvalidTransitionError, UnknownDayError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="MealSnap", version=__version__, lifespan=lifespan)


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    """Action not available in the current step (stale tab, double click)."""
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
    )


@app.exception_handler(UnknownDayError)
async def unknown_day_handler(request: Request, exc: UnknownDayError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
    )


# Include routers
app.include_router(plan.router)
app.include_router(preferences.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
