"""
Verification workflow: administrator decisions on payment requests.

Allowed transitions:

    pending  -> verified   (grants the plan's tier to the purchaser)
    pending  -> rejected
    verified -> refunded
    rejected -> refunded

Every decision runs in a single database transaction: the guarded ledger
update, the profile change (on verification) and the audit row are committed
together or not at all.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import get_plan
from infrastructure.config.settings import settings
from infrastructure.database.models.admin import AdminAuditLog, AuditAction, AuditTargetType
from infrastructure.database.models.payment import PaymentRequest, PaymentStatus
from infrastructure.database.models.profile import (
    Profile,
    SubscriptionStatus,
    SubscriptionTier,
)
from services.payment_ledger import PaymentLedger
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[PaymentStatus, tuple[PaymentStatus, ...]] = {
    PaymentStatus.VERIFIED: (PaymentStatus.PENDING,),
    PaymentStatus.REJECTED: (PaymentStatus.PENDING,),
    PaymentStatus.REFUNDED: (PaymentStatus.VERIFIED, PaymentStatus.REJECTED),
}

_AUDIT_ACTIONS = {
    PaymentStatus.VERIFIED: AuditAction.PAYMENT_VERIFIED,
    PaymentStatus.REJECTED: AuditAction.PAYMENT_REJECTED,
    PaymentStatus.REFUNDED: AuditAction.PAYMENT_REFUNDED,
}


class InvalidTransitionError(ValueError):
    """Raised when the requested target status is not reachable at all."""


class TransitionConflictError(ValueError):
    """Raised when a request is no longer in a status the transition accepts."""

    def __init__(self, request_id: str, current_status: str, target: PaymentStatus):
        super().__init__(
            f"Payment request {request_id} is {current_status}, cannot move to {target.value}"
        )
        self.request_id = request_id
        self.current_status = current_status
        self.target = target


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _subscription_snapshot(profile: Optional[Profile]) -> dict:
    if profile is None:
        return {}
    expires_at = profile.subscription_expires_at
    return {
        "subscription_tier": profile.subscription_tier,
        "subscription_status": profile.subscription_status,
        "subscription_expires_at": expires_at.isoformat() if expires_at else None,
    }


class VerificationWorkflow:
    """Applies administrator decisions to the ledger and the profile store."""

    def __init__(
        self,
        db: AsyncSession,
        time_provider: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.ledger = PaymentLedger(db)
        self.profiles = ProfileStore(db)
        self._time_provider = time_provider or _utc_now

    def now(self) -> datetime:
        return self._time_provider()

    def grant_for(self, payment_request: PaymentRequest) -> tuple[SubscriptionTier, timedelta]:
        """
        Resolve the tier and duration a verified request grants.

        Unknown plan ids fall back to the request's own tier for one billing
        period.
        """
        plan = get_plan(payment_request.plan_id)
        if plan is not None:
            return plan.tier, timedelta(days=plan.duration_days)

        logger.warning(
            "Payment request %s has unknown plan %r, granting %s for one billing period",
            payment_request.id,
            payment_request.plan_id,
            payment_request.tier,
        )
        return (
            SubscriptionTier(payment_request.tier),
            timedelta(days=settings.billing_period_days),
        )

    async def _audit(
        self,
        admin_id: str,
        action: AuditAction,
        target_type: AuditTargetType,
        target_id: str,
        details: dict,
        ip_address: Optional[str],
    ) -> AdminAuditLog:
        audit_log = AdminAuditLog(
            admin_id=admin_id,
            action=action.value,
            target_type=target_type.value,
            target_id=target_id,
            details=details or None,
            ip_address=ip_address,
        )
        self.db.add(audit_log)
        await self.db.flush()
        return audit_log

    async def apply(
        self,
        request_id: str,
        status: PaymentStatus | str,
        admin_id: str,
        admin_note: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentRequest:
        """
        Move a payment request to ``status`` on behalf of an administrator.

        Raises:
            InvalidTransitionError: Unknown or unreachable target status
            PaymentRequestNotFoundError: No such request
            TransitionConflictError: Request not in an accepted source status
        """
        try:
            target = PaymentStatus(status)
        except ValueError:
            raise InvalidTransitionError(f"Unknown payment status: {status}") from None
        if target not in ALLOWED_TRANSITIONS:
            raise InvalidTransitionError(f"Cannot move a payment request to {target.value}")

        now = self.now()
        sources = ALLOWED_TRANSITIONS[target]

        try:
            payment_request = await self.ledger.get_or_raise(request_id, refresh=True)
            previous_status = payment_request.status
            if PaymentStatus(previous_status) not in sources:
                raise TransitionConflictError(request_id, previous_status, target)

            details: dict = {
                "old_values": {"status": previous_status},
                "new_values": {"status": target.value},
            }
            if admin_note:
                details["admin_note"] = admin_note

            # Resolve the grant before writing anything
            grant = self.grant_for(payment_request) if target is PaymentStatus.VERIFIED else None

            if not await self.ledger.transition(request_id, sources, target, admin_note, now):
                raise TransitionConflictError(request_id, previous_status, target)

            if grant is not None:
                tier, duration = grant
                profile = await self.profiles.get(payment_request.user_id)
                details["subscription_before"] = _subscription_snapshot(profile)
                profile = await self.profiles.apply_subscription(
                    payment_request.user_id,
                    tier,
                    SubscriptionStatus.ACTIVE,
                    now + duration,
                    create_missing=True,
                )
                if not profile.email and payment_request.user_email:
                    profile.email = payment_request.user_email
                details["subscription_after"] = _subscription_snapshot(profile)

            await self._audit(
                admin_id,
                _AUDIT_ACTIONS[target],
                AuditTargetType.PAYMENT_REQUEST,
                request_id,
                details,
                ip_address,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Admin %s moved payment request %s from %s to %s",
            admin_id,
            request_id,
            previous_status,
            target.value,
            extra={"payment_request_id": request_id},
        )
        return await self.ledger.get_or_raise(request_id, refresh=True)

    async def verify(
        self,
        request_id: str,
        admin_id: str,
        admin_note: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentRequest:
        return await self.apply(request_id, PaymentStatus.VERIFIED, admin_id, admin_note, ip_address)

    async def reject(
        self,
        request_id: str,
        admin_id: str,
        admin_note: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentRequest:
        return await self.apply(request_id, PaymentStatus.REJECTED, admin_id, admin_note, ip_address)

    async def refund(
        self,
        request_id: str,
        admin_id: str,
        admin_note: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentRequest:
        """Mark a request refunded; the purchaser's subscription is left as is."""
        return await self.apply(request_id, PaymentStatus.REFUNDED, admin_id, admin_note, ip_address)

    async def override_subscription(
        self,
        user_id: str,
        tier: SubscriptionTier,
        months: int,
        admin_id: str,
        ip_address: Optional[str] = None,
    ) -> Profile:
        """
        Set a user's subscription directly, bypassing the ledger.

        Free clears the expiration and cancels; a paid tier runs for
        ``months`` billing periods from now.

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        now = self.now()
        if tier is SubscriptionTier.FREE:
            status, expires_at = SubscriptionStatus.CANCELED, None
        else:
            status = SubscriptionStatus.ACTIVE
            expires_at = now + timedelta(days=months * settings.billing_period_days)

        try:
            profile = await self.profiles.get_or_raise(user_id, refresh=True)
            before = _subscription_snapshot(profile)
            profile = await self.profiles.apply_subscription(user_id, tier, status, expires_at)
            await self._audit(
                admin_id,
                AuditAction.SUBSCRIPTION_UPDATED,
                AuditTargetType.PROFILE,
                user_id,
                {
                    "old_values": before,
                    "new_values": _subscription_snapshot(profile),
                    "months": months,
                },
                ip_address,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Admin %s set subscription of user %s to %s (expires %s)",
            admin_id,
            user_id,
            tier.value,
            expires_at.isoformat() if expires_at else "never",
        )
        return profile
