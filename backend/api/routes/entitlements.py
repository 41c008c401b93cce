"""
Session, entitlement and content access API routes.
"""

import logging
from dataclasses import asdict
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_identity, get_optional_identity
from api.middleware.rate_limit import get_rate_limit, limiter, reader_key
from api.schemas.entitlements import (
    ContentAccessRequest,
    ContentAccessResponse,
    EntitlementResponse,
    SessionResponse,
)
from core.security.tokens import IdentityClaims
from infrastructure.database.connection import get_db
from services.access_gate import AccessGate
from services.entitlement_service import EntitlementService
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Entitlements"])


@router.post("/session", response_model=SessionResponse)
@limiter.limit(get_rate_limit("session"), key_func=reader_key)
async def establish_session(
    request: Request,
    identity: Annotated[IdentityClaims, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """
    Establish a session for the signed-in identity.

    Creates a free profile on first sight and refreshes contact details
    otherwise. Subscription state is never changed here.
    """
    store = ProfileStore(db)
    created = await store.get(identity.sub) is None
    profile = await store.ensure_profile(identity.sub, identity.email, identity.name)
    await db.commit()

    if created:
        logger.info("Session established for new user %s", identity.sub)

    snapshot = EntitlementService(db).snapshot_for(identity.sub, profile)
    return SessionResponse(
        created=created,
        entitlements=EntitlementResponse(**asdict(snapshot)),
    )


@router.get("/entitlements/me", response_model=EntitlementResponse)
async def get_my_entitlements(
    identity: Annotated[IdentityClaims, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> EntitlementResponse:
    """Current entitlement snapshot; ``is_stale`` marks a fail-closed answer."""
    snapshot = await EntitlementService(db).get_snapshot(identity.sub)
    return EntitlementResponse(**asdict(snapshot))


@router.post("/content/{content_id}/access", response_model=ContentAccessResponse)
@limiter.limit(get_rate_limit("content_access"), key_func=reader_key)
async def open_content(
    request: Request,
    content_id: str,
    body: ContentAccessRequest,
    identity: Annotated[Optional[IdentityClaims], Depends(get_optional_identity)],
    db: AsyncSession = Depends(get_db),
) -> ContentAccessResponse:
    """
    Decide what the visitor sees for a content item.

    Signed-in visitors without a profile get one on the fly so the free
    allowance applies from their first premium read.
    """
    user_id = identity.sub if identity else None

    if identity is not None and body.is_premium:
        try:
            await ProfileStore(db).ensure_profile(identity.sub, identity.email, identity.name)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("Could not ensure profile for user %s: %s", identity.sub, e)

    decision = await AccessGate(db).open_content(
        user_id,
        content_id,
        body.view_session_id,
        body.is_premium,
        body.required_tier,
    )

    return ContentAccessResponse(
        content_id=content_id,
        outcome=decision.outcome,
        full_access=decision.full_access,
        tier=decision.tier,
        remaining_reads=decision.remaining_reads,
        consumed=decision.consumed,
        preview_paragraphs=decision.preview_paragraphs,
        is_stale=decision.is_stale,
    )
