"""Sub-affiliate commission repository."""
from typing import Optional, List

from sqlalchemy import select

from database.models import CommissionStatus, SubAffiliateCommission
from database.repositories.base import BaseRepository


class SubAffiliateCommissionRepository(BaseRepository[SubAffiliateCommission]):
    """Repository for SubAffiliateCommission model operations."""

    model_class = SubAffiliateCommission

    async def get_by_source(self, source_commission_id: int, for_update: bool = False) -> Optional[SubAffiliateCommission]:
        """Get the derived commission for a source commission."""
        query = select(SubAffiliateCommission).where(
            SubAffiliateCommission.source_commission_id == source_commission_id
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_all_by_parent(
        self,
        parent_affiliate_id: int,
        status: Optional[CommissionStatus] = None,
    ) -> List[SubAffiliateCommission]:
        """Get derived commissions earned by a parent, newest first."""
        query = select(SubAffiliateCommission).where(
            SubAffiliateCommission.parent_affiliate_id == parent_affiliate_id
        )
        if status:
            query = query.where(SubAffiliateCommission.status == status.value)
        query = query.order_by(SubAffiliateCommission.created_at.desc(), SubAffiliateCommission.id.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())
