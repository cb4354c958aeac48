"""
Mock Interview Coach - FastAPI Backend
Main application entry point with health check, job and metrics routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import configure_logging, settings
from database import engine, Base
import models  # noqa: F401
from routers import health, jobs, metrics
from worker import build_pipeline_workers, start_workers, stop_workers

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Mock Interview Coach API...")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)

    workers = []
    if settings.RUN_WORKERS_IN_API:
        workers = start_workers(build_pipeline_workers())
    app.state.pipeline_workers = workers
    yield
    # Shutdown
    await stop_workers(workers)
    logger.info("Shutting down API...")


app = FastAPI(
    title="Mock Interview Coach API",
    description="Score practice interview answers and transcribe recorded responses",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(jobs.router, tags=["Jobs"])
app.include_router(metrics.router, tags=["Metrics"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Mock Interview Coach API",
        "version": "0.1.0",
        "status": "running"
    }
