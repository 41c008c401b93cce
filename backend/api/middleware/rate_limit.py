"""
Rate limiting for the entitlement API using slowapi.

Metered endpoints are keyed by the signed-in reader so that several readers
behind one NAT do not share a bucket; everything else is keyed by client IP.

Rate Limits:
- Payment request creation: 5 per minute
- Content access checks: 60 per minute
- Session establishment: 20 per minute
- Default: 100 requests per minute
"""

import ipaddress
import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from api.dependencies import bearer_token, token_service
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "payment_request": "5/minute",
    "content_access": "60/minute",
    "session": "20/minute",
    "default": "100/minute",
}

_PROXY_HEADERS = ("x-forwarded-for", "x-real-ip")


def _public_ip(value: str) -> Optional[str]:
    """Return the address if it parses and is publicly routable.

    Private and loopback values in proxy headers are trivially spoofed, so
    they never win over the socket address.
    """
    try:
        addr = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if addr.is_private or addr.is_loopback or addr.is_link_local:
        return None
    return str(addr)


def client_ip(request: Request) -> str:
    """Best-effort client address behind a reverse proxy."""
    for header in _PROXY_HEADERS:
        raw = request.headers.get(header)
        if raw:
            # First entry of X-Forwarded-For is the original client
            ip = _public_ip(raw.split(",")[0])
            if ip:
                return ip
    return get_remote_address(request)


def reader_key(request: Request) -> str:
    """Key metered requests by identity, anonymous ones by IP."""
    token = bearer_token(request.headers.get("authorization"))
    if token:
        claims = token_service.verify_session_token(token)
        if claims is not None:
            return f"user:{claims.sub}"
    return f"ip:{client_ip(request)}"


_storage_uri = settings.redis_url or "memory://"

if not settings.redis_url:
    logger.warning("Rate limiter using in-memory storage; limits are per process")
    if settings.is_production:
        logger.critical("REDIS_URL is not set in production: rate limits are not shared across workers")

# default_limits applies through SlowAPIMiddleware; @limiter.limit overrides it per route
limiter = Limiter(
    key_func=client_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """Limit string for an endpoint, e.g. ``get_rate_limit("session") == "20/minute"``."""
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
