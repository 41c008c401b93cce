"""
Payment ledger service.

Append-only record of purchase attempts. Requests are created pending and
move through verification via guarded status transitions; rows are never
deleted and only status, admin note and updated_at ever change.
"""

import logging
from datetime import UTC, datetime
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import CURRENCY, get_plan
from infrastructure.database.models.payment import PaymentMethod, PaymentRequest, PaymentStatus

logger = logging.getLogger(__name__)


class UnknownPlanError(ValueError):
    """Raised when a plan id is not in the plan table."""

    def __init__(self, plan_id: str):
        super().__init__(f"Unknown plan: {plan_id}")
        self.plan_id = plan_id


class PaymentRequestNotFoundError(LookupError):
    """Raised when a payment request id does not exist."""

    def __init__(self, request_id: str):
        super().__init__(f"Payment request {request_id} not found")
        self.request_id = request_id


class PaymentLedger:
    """Data access for the ``payment_requests`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_request(
        self,
        user_id: str,
        plan_id: str,
        payment_method: PaymentMethod,
        user_email: str = "",
        user_name: Optional[str] = None,
        phone_number: Optional[str] = None,
        reference_number: Optional[str] = None,
        receipt_url: Optional[str] = None,
        promo_code: Optional[str] = None,
    ) -> PaymentRequest:
        """
        Record a new pending purchase.

        Tier, amount and plan name always come from the plan table; the
        caller only names the plan.

        Raises:
            UnknownPlanError: If the plan id is not purchasable
        """
        plan = get_plan(plan_id)
        if plan is None:
            raise UnknownPlanError(plan_id)

        payment_request = PaymentRequest(
            user_id=user_id,
            user_email=user_email or "",
            user_name=user_name,
            plan_id=plan.id,
            plan_name=plan.name,
            tier=plan.tier.value,
            amount=plan.price,
            currency=CURRENCY,
            payment_method=payment_method.value,
            phone_number=phone_number,
            reference_number=reference_number,
            receipt_url=receipt_url,
            promo_code=promo_code,
            status=PaymentStatus.PENDING.value,
        )
        self.db.add(payment_request)
        await self.db.flush()

        logger.info(
            "Payment request %s created for user %s (plan=%s, amount=%d %s)",
            payment_request.id,
            user_id,
            plan.id,
            plan.price,
            CURRENCY,
            extra={"user_id": user_id, "payment_request_id": payment_request.id},
        )
        return payment_request

    async def get(self, request_id: str, refresh: bool = False) -> Optional[PaymentRequest]:
        stmt = select(PaymentRequest).where(PaymentRequest.id == request_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, request_id: str, refresh: bool = False) -> PaymentRequest:
        payment_request = await self.get(request_id, refresh=refresh)
        if payment_request is None:
            raise PaymentRequestNotFoundError(request_id)
        return payment_request

    async def list_all(self) -> list[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest).order_by(PaymentRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: PaymentStatus) -> list[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.status == status.value)
            .order_by(PaymentRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_user(self, user_id: str) -> list[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.user_id == user_id)
            .order_by(PaymentRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def transition(
        self,
        request_id: str,
        from_statuses: Iterable[PaymentStatus],
        to_status: PaymentStatus,
        admin_note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Move a request to ``to_status`` if it is still in one of ``from_statuses``.

        The status check and the write are one statement, so two administrators
        acting on the same request cannot both succeed.

        Returns:
            True if the row changed, False if it was not in an allowed status
        """
        allowed = [status.value for status in from_statuses]
        values = {
            "status": to_status.value,
            "updated_at": now or datetime.now(UTC),
        }
        if admin_note is not None:
            values["admin_note"] = admin_note

        result = await self.db.execute(
            update(PaymentRequest)
            .where(PaymentRequest.id == request_id, PaymentRequest.status.in_(allowed))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def total_verified_revenue(self) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(PaymentRequest.amount), 0)).where(
                PaymentRequest.status == PaymentStatus.VERIFIED.value
            )
        )
        return int(result.scalar_one())

    async def count_by_status(self, status: PaymentStatus) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(PaymentRequest)
            .where(PaymentRequest.status == status.value)
        )
        return result.scalar_one()

    async def list_recent(self, limit: int = 20) -> list[PaymentRequest]:
        result = await self.db.execute(
            select(PaymentRequest).order_by(PaymentRequest.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
