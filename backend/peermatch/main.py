"""
Peer Matching API - Main Application Entry Point

This module initializes the FastAPI application with:
- Database connection and schema initialization
- Presence sweep scheduler
- CORS middleware for frontend communication
- Prometheus metrics
- API router registration

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── CORS Middleware
    ├── Prometheus Middleware (/metrics)
    └── API Router
        └── /api/live-support - Profiles, matches, presence
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from peermatch.api import api_router
from peermatch.config import get_settings
from peermatch.database import init_db
from peermatch.middleware import setup_metrics
from peermatch.scheduler import start_scheduler, stop_scheduler
from peermatch.services.cache import close_cache, get_cache
from peermatch.services.match_queue import get_match_queue

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Initialize database tables
        2. Start the presence sweep scheduler

    Shutdown:
        1. Stop the scheduler
        2. Wait for queued match recomputations
        3. Close the embedding cache connection
    """
    await init_db()
    start_scheduler()
    yield
    stop_scheduler()
    await get_match_queue().drain()
    await close_cache()


app = FastAPI(
    title="Peer Matching API",
    description="Embedding-based peer matching for live support",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)

app.include_router(api_router)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Profile store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Profile store unavailable"})


@app.get("/health")
async def health_check():
    """Service liveness, plus embedding cache state when the cache is enabled."""
    health = {"status": "healthy"}
    if settings.embedding_cache_enabled:
        cache = get_cache()
        health["embeddingCache"] = {"connected": await cache.health_check(), **cache.get_stats()}
    return health
