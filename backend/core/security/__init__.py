"""
Security utilities for identity verification.
"""

from .tokens import IdentityClaims, IdentityTokenService

__all__ = [
    "IdentityClaims",
    "IdentityTokenService",
]
