"""
Identity session tokens.

The identity provider signs a short-lived JWT per session carrying the opaque
user id, email and display name. This service verifies those tokens and can
issue them (development and tests, or a trusted provider sharing the secret).
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt


@dataclass
class IdentityClaims:
    """Verified identity carried by a session token."""

    sub: str  # Identity-provider user id
    exp: datetime
    email: str | None = None
    name: str | None = None


class IdentityTokenService:
    """Creates and verifies identity session tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60,
    ):
        """
        Initialize the token service.

        Args:
            secret_key: Secret shared with the identity provider
            algorithm: JWT algorithm (default: HS256)
            expire_minutes: Lifetime of tokens issued by create_session_token
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def create_session_token(
        self,
        user_id: str,
        email: str | None = None,
        name: str | None = None,
        expire_minutes: int | None = None,
    ) -> str:
        now = datetime.now(UTC)
        minutes = expire_minutes if expire_minutes is not None else self._expire_minutes

        payload = {
            "sub": user_id,
            "exp": now + timedelta(minutes=minutes),
            "iat": now,
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify_session_token(self, token: str) -> IdentityClaims | None:
        """
        Decode and validate a session token.

        Returns:
            IdentityClaims if the signature and expiry check out and a
            subject is present, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except JWTError:
            return None

        if not payload.get("sub") or "exp" not in payload:
            return None

        return IdentityClaims(
            sub=str(payload["sub"]),
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            email=payload.get("email"),
            name=payload.get("name"),
        )
