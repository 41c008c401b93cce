"""
Admin API routes: payment verification, profile search and subscription overrides.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_admin_id
from api.middleware.rate_limit import client_ip
from api.schemas.admin import (
    DashboardResponse,
    DashboardStats,
    PaymentRequestUpdate,
    ProfileResponse,
    SubscriptionUpdate,
)
from api.schemas.billing import PaymentRequestResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.payment import PaymentStatus
from infrastructure.database.models.profile import SubscriptionTier
from services.payment_ledger import PaymentLedger, PaymentRequestNotFoundError
from services.profile_store import ProfileNotFoundError, ProfileStore
from services.verification_workflow import (
    InvalidTransitionError,
    TransitionConflictError,
    VerificationWorkflow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# Payment Requests
# ============================================================================


@router.get("/payment-requests", response_model=list[PaymentRequestResponse])
async def get_payment_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
) -> list[PaymentRequestResponse]:
    """List payment requests newest first, optionally filtered by status."""
    ledger = PaymentLedger(db)
    if status_filter:
        try:
            wanted = PaymentStatus(status_filter)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status: {status_filter}",
            )
        requests = await ledger.list_by_status(wanted)
    else:
        requests = await ledger.list_all()
    return [PaymentRequestResponse.model_validate(r) for r in requests]


@router.post("/payment-requests/{request_id}", response_model=PaymentRequestResponse)
async def update_payment_request(
    request_id: str,
    body: PaymentRequestUpdate,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
) -> PaymentRequestResponse:
    """
    Verify, reject or refund a payment request.

    Verification grants the plan's tier to the purchaser in the same
    transaction. A request that has already left the accepted source status
    is refused with 409 and nothing is re-applied.
    """
    try:
        payment_request = await VerificationWorkflow(db).apply(
            request_id,
            body.status,
            admin_id,
            admin_note=body.admin_note,
            ip_address=client_ip(request),
        )
    except InvalidTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PaymentRequestNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment request not found",
        )
    except TransitionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError as e:
        logger.error("Failed to update payment request %s: %s", request_id, type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update payment request",
        )

    return PaymentRequestResponse.model_validate(payment_request)


# ============================================================================
# Profiles and Subscriptions
# ============================================================================


@router.get("/profiles", response_model=list[ProfileResponse])
async def search_profiles(
    email: Optional[str] = Query(None, max_length=255),
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
) -> list[ProfileResponse]:
    """Case-insensitive email substring search (50 rows max); all profiles without ``email``."""
    store = ProfileStore(db)
    profiles = await store.search_by_email(email) if email else await store.list_all()
    return [ProfileResponse.model_validate(p) for p in profiles]


@router.post("/subscriptions", response_model=ProfileResponse)
async def update_subscription(
    body: SubscriptionUpdate,
    request: Request,
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    """Set a user's tier directly, bypassing the payment ledger."""
    try:
        tier = SubscriptionTier(body.tier)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tier: {body.tier}",
        )

    try:
        profile = await VerificationWorkflow(db).override_subscription(
            body.user_id,
            tier,
            body.months,
            admin_id,
            ip_address=client_ip(request),
        )
    except ProfileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    except SQLAlchemyError as e:
        logger.error("Failed to update subscription for %s: %s", body.user_id, type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update subscription",
        )

    return ProfileResponse.model_validate(profile)


# ============================================================================
# Dashboard
# ============================================================================


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
) -> DashboardResponse:
    """User counts per stored tier, verified revenue and recent payments."""
    ledger = PaymentLedger(db)
    tiers = await ProfileStore(db).count_by_tier()

    return DashboardResponse(
        stats=DashboardStats(
            total_users=sum(tiers.values()),
            free=tiers[SubscriptionTier.FREE.value],
            standard=tiers[SubscriptionTier.STANDARD.value],
            premium=tiers[SubscriptionTier.PREMIUM.value],
            total_revenue=await ledger.total_verified_revenue(),
            pending_payments=await ledger.count_by_status(PaymentStatus.PENDING),
        ),
        recent_payments=[
            PaymentRequestResponse.model_validate(r) for r in await ledger.list_recent()
        ],
    )
