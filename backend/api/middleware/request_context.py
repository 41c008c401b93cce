"""
HTTP middleware: request ids, access logging, body size cap and response headers.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from infrastructure.config.settings import Settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_QUIET_PREFIXES = (f"{API_PREFIX}/health",)


def _request_id(incoming: str | None) -> str:
    # Only echo a caller-supplied id when it is a UUID
    if incoming:
        try:
            return str(uuid.UUID(incoming))
        except ValueError:
            pass
    return str(uuid.uuid4())


def install_http_middleware(app: FastAPI, settings: Settings) -> None:
    """Register the request pipeline middleware on ``app``.

    Starlette runs the last registered middleware first, so the request
    context wraps the body size check and the response headers.
    """
    max_body = settings.max_request_body_bytes

    @app.middleware("http")
    async def response_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        # Entitlements and quotas are per user and change on every metered read
        if request.url.path.startswith(API_PREFIX):
            response.headers.setdefault("Cache-Control", "no-store")
        return response

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            length = request.headers.get("content-length")
            if length and length.isdigit() and int(length) > max_body:
                return JSONResponse(
                    status_code=413,
                    content={"detail": f"Request body too large (max {max_body} bytes)"},
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = _request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        path = request.url.path
        if not path.startswith(_QUIET_PREFIXES):
            logger.info(
                "%s %s %s %.1fms",
                request.method,
                path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
        return response
