"""
Unit tests for identity session tokens and the identity dependencies.
"""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import HTTPException, status
from jose import jwt

from api.dependencies import get_current_identity, get_optional_identity, token_service
from core.security.tokens import IdentityTokenService

SECRET = "test-secret-key-with-enough-length-0123456789"


@pytest.fixture
def tokens() -> IdentityTokenService:
    return IdentityTokenService(secret_key=SECRET, expire_minutes=15)


class TestIdentityTokenService:
    def test_round_trip_carries_identity(self, tokens):
        token = tokens.create_session_token("user_abc", email="a@example.com", name="Awa")

        claims = tokens.verify_session_token(token)

        assert claims.sub == "user_abc"
        assert claims.email == "a@example.com"
        assert claims.name == "Awa"
        assert claims.exp > datetime.now(UTC)

    def test_wrong_secret_is_rejected(self, tokens):
        token = tokens.create_session_token("user_abc")
        other = IdentityTokenService(secret_key="another-secret-entirely-0123456789")

        assert other.verify_session_token(token) is None

    def test_expired_token_is_rejected(self, tokens):
        token = tokens.create_session_token("user_abc", expire_minutes=-1)

        assert tokens.verify_session_token(token) is None

    def test_token_without_subject_is_rejected(self, tokens):
        token = jwt.encode(
            {"exp": datetime.now(UTC) + timedelta(minutes=5), "email": "x@example.com"},
            SECRET,
            algorithm="HS256",
        )

        assert tokens.verify_session_token(token) is None

    def test_garbage_is_rejected(self, tokens):
        assert tokens.verify_session_token("not-a-jwt") is None


@pytest.mark.asyncio
class TestIdentityDependencies:
    async def test_missing_header_is_unauthorized(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_identity(None)

        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_invalid_token_is_unauthorized(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_identity("Bearer nope")

        assert exc_info.value.detail == "Invalid or expired token"

    async def test_valid_token_resolves_identity(self):
        token = token_service.create_session_token("user_1", email="u@example.com")

        claims = await get_current_identity(f"Bearer {token}")

        assert claims.sub == "user_1"

    async def test_optional_identity_tolerates_anonymous_and_bad_tokens(self):
        assert await get_optional_identity(None) is None
        assert await get_optional_identity("Basic abc") is None
        assert await get_optional_identity("Bearer nope") is None
