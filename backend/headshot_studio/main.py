"""FastAPI application entry point.

This module configures the FastAPI application with:
- Logging setup
- CORS middleware for frontend communication
- API v1 router with all endpoints
- Database/Redis lifecycle management
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from headshot_studio.api.v1.api import api_router
from headshot_studio.core.config import settings
from headshot_studio.core.database import close_db
from headshot_studio.core.logging_config import configure_logging
from headshot_studio.core.redis import close_redis, redis_available

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    configure_logging()
    logger.info(f"Starting {settings.PROJECT_NAME} API ({settings.ENVIRONMENT})...")

    yield

    logger.info(f"Shutting down {settings.PROJECT_NAME} API...")
    await close_redis()
    await close_db()


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="AI headshot and image editing studio with a credit ledger",
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "headshot-studio-backend"}


@app.get("/api/v1/status")
async def status_check():
    """API status endpoint with service health details."""
    redis_status = "connected" if await redis_available() else "disconnected"
    return {
        "status": "running",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "services": {
            "redis": redis_status,
            "job_queue": "arq",
        },
    }
