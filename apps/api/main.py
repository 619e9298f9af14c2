"""
MOAI Community API - FastAPI Backend
Main application entry point with health check and API routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    users,
    conversations,
    notifications,
    toolkits,
    news,
    projects,
    library,
    public_api,
)

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("moai")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting MOAI Community API...")
    validate_security_settings()
    if not settings.ADMIN_EMAILS:
        logger.warning("ADMIN_EMAILS is empty; moderation routes will reject every caller.")
    if not settings.AUTH_PROJECT_ID:
        logger.warning("AUTH_PROJECT_ID is not set; /auth/session will refuse every sign-in.")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)
    yield
    # Shutdown
    logger.info("Shutting down API...")


app = FastAPI(
    title="MOAI Community API",
    description="Artist community backend: messaging, moderation, notifications and toolkit reviews",
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
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(conversations.router, prefix="/conversations", tags=["Messaging"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(toolkits.router, prefix="/toolkits", tags=["Toolkits"])
app.include_router(news.router, prefix="/news", tags=["News"])
app.include_router(projects.router, prefix="/projects", tags=["Projects"])
app.include_router(library.router, prefix="/me", tags=["Library"])
app.include_router(public_api.router, prefix="/api", tags=["Public"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "MOAI Community API",
        "version": "0.1.0",
        "status": "running"
    }
