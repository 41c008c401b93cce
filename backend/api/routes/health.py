"""Health and probe endpoints."""

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config import get_settings
from infrastructure.database import get_db
from infrastructure.database.models import PaymentRequest, PremiumReadGrant, Profile

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()

DB_TIMEOUT_SECONDS = 5.0
REDIS_TIMEOUT_SECONDS = 2.0

# Tables the entitlement paths cannot work without
_REQUIRED_TABLES = (Profile, PaymentRequest, PremiumReadGrant)


def _app_info() -> dict:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def _ping_database(db: AsyncSession) -> str:
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=DB_TIMEOUT_SECONDS)
    except TimeoutError:
        logger.error("Database probe timed out")
        return "timeout"
    except SQLAlchemyError as e:
        logger.error("Database probe failed: %s", type(e).__name__)
        return "error"
    return "ok"


async def _schema_ready(db: AsyncSession) -> bool:
    try:
        for model in _REQUIRED_TABLES:
            await db.execute(select(model).limit(1))
    except SQLAlchemyError as e:
        logger.warning("Entitlement schema missing or unreadable: %s", e)
        await db.rollback()
        return False
    return True


async def _ping_redis() -> str:
    if not settings.redis_url:
        return "not_configured"

    import redis.asyncio as aioredis

    client = aioredis.from_url(settings.redis_url)
    try:
        await asyncio.wait_for(client.ping(), timeout=REDIS_TIMEOUT_SECONDS)
        return "ok"
    except Exception as e:
        # Rate limits degrade to per-process counters without Redis
        logger.warning("Redis probe failed: %s", e)
        return "degraded"
    finally:
        await client.aclose()


@router.get("/health")
async def health_check():
    return {"status": "healthy", **_app_info()}


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    db_status = await _ping_database(db)
    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "database": "connected" if db_status == "ok" else f"error: database {db_status}",
        **_app_info(),
    }


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Ready once the database answers and the entitlement tables exist."""
    db_ok = await _ping_database(db) == "ok"
    schema_ok = db_ok and await _schema_ready(db)
    return {
        "ready": schema_ok,
        "database": "ok" if db_ok else "unavailable",
        "schema": "ok" if schema_ok else "missing",
        "redis": await _ping_redis(),
    }


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
