"""
SmashQueue API Server

FastAPI server exposing the court queue, match lifecycle and participant stats.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import os
import uvicorn

from smashqueue.api.routes import router
from smashqueue.database import db
from smashqueue.database.db import get_db_session
from smashqueue.models.schemas import HealthResponse

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up SmashQueue API...")

    # Fallback for deployments that have not run migrations yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - engine operations report StoreUnavailable until the database is reachable

    yield

    logger.info("Shutting down SmashQueue API...")
    await db.engine.dispose()


app = FastAPI(
    title="SmashQueue API",
    description="Court waiting line, match lifecycle and player stats for badminton sessions",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/api/health", response_model=HealthResponse)
async def health_check(session: AsyncSession = Depends(get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "API is running"}
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return {"status": "unhealthy", "message": f"Error: {str(e)}"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
