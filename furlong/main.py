"""FastAPI application entry point for Furlong."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from furlong import __version__
from furlong.activity_log import log_system
from furlong.api import history, horses, race_charts, system
from furlong.config import settings
from furlong.models.database import async_session, init_db
from furlong.store import SqlStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logger.info("Starting Furlong...")

    # Ensure data directory exists
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)

    await init_db()
    logger.info(f"Database initialized at {settings.db_path}")

    if getattr(app.state, "store", None) is None:
        app.state.store = SqlStore(async_session)
    log_system("Service started")

    yield

    logger.info("Shutting down Furlong...")


app = FastAPI(
    title="Furlong",
    description="Race chart ingestion and horse identity service",
    version=__version__,
    lifespan=lifespan,
)
app.state.store = None

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(race_charts.router, prefix="/api/race-charts", tags=["race-charts"])
app.include_router(horses.router, prefix="/api/horses", tags=["horses"])
app.include_router(history.router, prefix="/api", tags=["history"])
app.include_router(system.router, prefix="/api", tags=["system"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("furlong.main:app", host="127.0.0.1", port=8000, reload=settings.debug)
