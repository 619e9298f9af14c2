"""
Service status for the community API: storage, rate-limit backend and outbound providers.
"""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from config import settings
from database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)

# Settings without which a deployment cannot serve members.
REQUIRED_SETTINGS = ("AUTH_PROJECT_ID", "ADMIN_EMAILS", "RESEND_API_KEY", "CONTACT_INBOX_EMAILS")


async def _database_state(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Database check failed: %s", exc)
        return "down"
    return "up"


async def _rate_limit_backend() -> str:
    client = redis.from_url(settings.REDIS_URL)
    try:
        await client.ping()
    except Exception as exc:
        logger.info("Redis unavailable, rate limits use local counters: %s", exc)
        return "local"
    finally:
        await client.aclose()
    return "redis"


def missing_settings() -> List[str]:
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name)]


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Database reachability decides health. A missing Redis only moves rate
    limiting to in-process counters and is reported, not failed.
    """
    database = await _database_state(db)
    providers: Dict[str, str] = {
        "sign_in": "configured" if settings.AUTH_PROJECT_ID else "missing",
        "email": "configured" if settings.RESEND_API_KEY else "missing",
        "translate": settings.TRANSLATE_API_URL,
    }
    return {
        "status": "healthy" if database == "up" else "degraded",
        "database": database,
        "rate_limit_backend": await _rate_limit_backend(),
        "providers": providers,
        "admins": len(settings.ADMIN_EMAILS),
    }


@router.get("/health/ready")
async def readiness_check():
    missing = missing_settings()
    if missing:
        return JSONResponse(status_code=503, content={"ready": False, "missing": missing})
    return {"ready": True}
