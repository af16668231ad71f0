"""Commission repository for database operations."""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, func

from database.models import Commission, CommissionStatus
from database.models.commission import UNPAID_STATUSES
from database.repositories.base import BaseRepository


class CommissionRepository(BaseRepository[Commission]):
    """Repository for Commission model operations."""

    model_class = Commission

    async def get_by_invoice_id(self, invoice_id: str) -> Optional[Commission]:
        """Get commission by invoice id (dedup key)."""
        result = await self.session.execute(
            select(Commission).where(Commission.invoice_id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def get_by_charge_id(self, charge_id: str, for_update: bool = False) -> Optional[Commission]:
        """Get commission by charge id."""
        query = (
            select(Commission)
            .where(Commission.charge_id == charge_id)
            .order_by(Commission.id)
            .limit(1)
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_subscription_history(self, subscription_id: str) -> tuple[int, Optional[Commission]]:
        """
        Summarise earlier commissions on a subscription.

        Returns:
            (count of commissions, earliest commission or None)
        """
        count_result = await self.session.execute(
            select(func.count(Commission.id)).where(Commission.subscription_id == subscription_id)
        )
        count = count_result.scalar() or 0
        if not count:
            return 0, None

        first_result = await self.session.execute(
            select(Commission)
            .where(Commission.subscription_id == subscription_id)
            .order_by(Commission.created_at, Commission.id)
            .limit(1)
        )
        return count, first_result.scalar_one_or_none()

    async def get_all_by_affiliate(
        self,
        affiliate_id: int,
        status: Optional[CommissionStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Commission]:
        """Get commissions of an affiliate, newest first."""
        query = select(Commission).where(Commission.affiliate_id == affiliate_id)
        if status:
            query = query.where(Commission.status == status.value)
        query = query.order_by(Commission.created_at.desc(), Commission.id.desc())
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_pending_total(self, affiliate_id: int) -> int:
        """Sum of commission amounts not yet paid or reversed."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(Commission.commission_amount_cents), 0)).where(
                Commission.affiliate_id == affiliate_id,
                Commission.status.in_(UNPAID_STATUSES),
            )
        )
        return int(result.scalar() or 0)

    async def get_due_for_payout(self, affiliate_id: int, now: datetime) -> List[Commission]:
        """Approved commissions of an affiliate whose payout term has passed, oldest due first."""
        result = await self.session.execute(
            select(Commission)
            .where(
                Commission.affiliate_id == affiliate_id,
                Commission.status == CommissionStatus.APPROVED.value,
                Commission.due_at <= now,
            )
            .order_by(Commission.due_at, Commission.id)
        )
        return list(result.scalars().all())
