"""Paywall Engine - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.middleware.rate_limit import limiter
from api.middleware.request_context import API_PREFIX, install_http_middleware
from api.routes import api_router
from infrastructure.config import get_settings
from infrastructure.database import Database
from infrastructure.logging_config import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)

# Headers that identify a reader or grant admin rights
_SCRUBBED_HEADERS = {"authorization", "x-admin-id", "cookie"}


def _scrub_event(event, hint):
    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SCRUBBED_HEADERS:
                headers[name] = "[Filtered]"
    return event


def init_sentry() -> None:
    """Enable Sentry when a well-formed DSN is configured."""
    dsn = settings.sentry_dsn
    if not dsn:
        return
    if not dsn.startswith("https://"):
        logger.warning("SENTRY_DSN appears malformed (%s...); Sentry disabled", dsn[:30])
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
        integrations=[
            FastApiIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
        before_send=_scrub_event,
    )
    logger.info("Sentry error tracking enabled (env=%s)", settings.environment)


# At import time so that startup failures are reported too
init_sentry()


async def _check_rate_limit_backend() -> None:
    import redis.asyncio as aioredis

    client = aioredis.from_url(settings.redis_url)
    try:
        await client.ping()
        logger.info("Rate limiter storage reachable")
    except Exception as e:
        # Limits fall back to per-process counters until Redis is back
        logger.critical("Rate limiter storage unreachable in production: %s", e)
    finally:
        await client.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        json_output=settings.is_production and not settings.debug,
        level="DEBUG" if settings.debug else "INFO",
    )
    logger.info(
        "Starting %s v%s (%s): %d free premium reads per %d days",
        settings.app_name,
        settings.app_version,
        settings.environment,
        settings.premium_read_allowance,
        settings.quota_window_days,
    )

    settings.validate_production_secrets()

    database = Database.from_settings(settings)
    app.state.database = database
    if settings.is_development:
        # Alembic owns the schema everywhere else
        await database.create_all()

    if settings.is_production and settings.redis_url:
        await _check_rate_limit_backend()

    yield

    logger.info("Shutting down")
    await database.close()


app = FastAPI(
    title=settings.app_name,
    description="Metered paywall and subscription entitlement service",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# SlowAPIMiddleware and the @limiter.limit decorators read app.state.limiter
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

install_http_middleware(app, settings)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    if settings.is_production:
        logger.error(
            "Unhandled %s on %s: %s",
            type(exc).__name__,
            request.url.path,
            str(exc)[:200],
            extra={"request_id": request_id},
        )
    else:
        logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "request_id": request_id},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Admin-Id"],
    expose_headers=["X-Request-ID"],
)

app.include_router(api_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.is_development else "disabled",
        "health": f"{API_PREFIX}/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.workers,
    )
