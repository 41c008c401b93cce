"""
API dependencies for identity resolution.
"""

from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from core.security.tokens import IdentityClaims, IdentityTokenService
from infrastructure.config.settings import settings

token_service = IdentityTokenService(
    secret_key=settings.identity_jwt_secret,
    algorithm=settings.identity_jwt_algorithm,
    expire_minutes=settings.identity_token_expire_minutes,
)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


async def get_optional_identity(
    authorization: Annotated[str | None, Header()] = None,
) -> Optional[IdentityClaims]:
    """
    Resolve the visitor's identity if a valid session token is present.

    Anonymous visitors and invalid tokens both resolve to None; routes that
    need a signed-in user use get_current_identity instead.
    """
    token = bearer_token(authorization)
    if not token:
        return None
    return token_service.verify_session_token(token)


async def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
) -> IdentityClaims:
    """Dependency requiring a valid identity session token."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = token_service.verify_session_token(token)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims

