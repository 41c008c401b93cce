"""
Billing API routes: plan catalogue and offline payment requests.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_identity
from api.middleware.rate_limit import get_rate_limit, limiter, reader_key
from api.schemas.billing import (
    FreePlanInfo,
    PaymentRequestCreate,
    PaymentRequestResponse,
    PlanInfo,
    PlansResponse,
)
from core.plans import CURRENCY, PLANS, free_plan_features
from core.security.tokens import IdentityClaims
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from services.payment_ledger import PaymentLedger, UnknownPlanError
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/plans", response_model=PlansResponse)
async def get_plans() -> PlansResponse:
    """List purchasable plans. Public."""
    return PlansResponse(
        plans=[
            PlanInfo(
                id=plan.id,
                name=plan.name,
                tier=plan.tier.value,
                duration_days=plan.duration_days,
                price=plan.price,
                currency=CURRENCY,
                features=list(plan.features),
            )
            for plan in PLANS.values()
        ],
        free=FreePlanInfo(
            premium_reads_per_window=settings.premium_read_allowance,
            window_days=settings.quota_window_days,
            features=list(
                free_plan_features(settings.premium_read_allowance, settings.quota_window_days)
            ),
        ),
    )


@router.post(
    "/payment-requests",
    response_model=PaymentRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(get_rate_limit("payment_request"), key_func=reader_key)
async def create_payment_request(
    request: Request,
    body: PaymentRequestCreate,
    identity: Annotated[IdentityClaims, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> PaymentRequestResponse:
    """
    Submit a purchase for manual verification.

    The amount and tier are taken from the plan table; the subscription is
    only granted once an administrator verifies the payment.
    """
    await ProfileStore(db).ensure_profile(identity.sub, identity.email, identity.name)

    try:
        payment_request = await PaymentLedger(db).create_request(
            user_id=identity.sub,
            plan_id=body.plan_id,
            payment_method=body.payment_method,
            user_email=identity.email or "",
            user_name=identity.name,
            phone_number=body.phone_number,
            reference_number=body.reference_number,
            receipt_url=body.receipt_url,
            promo_code=body.promo_code,
        )
    except UnknownPlanError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown plan: {body.plan_id}",
        )

    await db.commit()
    return PaymentRequestResponse.model_validate(payment_request)


@router.get("/payment-requests", response_model=list[PaymentRequestResponse])
async def list_my_payment_requests(
    identity: Annotated[IdentityClaims, Depends(get_current_identity)],
    db: AsyncSession = Depends(get_db),
) -> list[PaymentRequestResponse]:
    """The caller's own payment requests, newest first."""
    requests = await PaymentLedger(db).list_by_user(identity.sub)
    return [PaymentRequestResponse.model_validate(r) for r in requests]
