"""
Sub-affiliate cascade.

When a recruited affiliate earns a commission, the recruiting (parent)
affiliate earns a derived share of it. The derived record mirrors the source
commission's status and is never changed on its own.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.dto import DeclineReason, SubCommissionResult
from core.exceptions import CommissionNotFoundError
from core.time_utils import utcnow
from database.models import Commission, CommissionStatus, SubAffiliateCommission
from database.models.commission import UNPAID_STATUSES
from database.repositories import (
    AffiliateRepository,
    CampaignRepository,
    CommissionRepository,
    SubAffiliateCommissionRepository,
)

logger = logging.getLogger(__name__)


def calculate_sub_commission(source_amount_cents: int, percent: float) -> int:
    """Parent's share of a source commission, rounded half-up to whole cents."""
    amount = Decimal(source_amount_cents) * Decimal(str(percent)) / Decimal(100)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class SubAffiliateCascade:
    """Service deriving parent commissions from recruit commissions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.commission_repo = CommissionRepository(session)
        self.sub_commission_repo = SubAffiliateCommissionRepository(session)

    async def _get_source(self, source_commission_id: int) -> Commission:
        commission = await self.commission_repo.get_by_id(source_commission_id)
        if not commission:
            raise CommissionNotFoundError(source_commission_id)
        return commission

    async def on_commission_created(self, source_commission_id: int) -> SubCommissionResult:
        """
        Derive the parent's commission for a freshly created source commission.

        Declines when the earner has no parent, the parent's campaign pays no
        recruitment commission, or the derived amount rounds to zero.

        Raises:
            CommissionNotFoundError: Unknown source commission id
        """
        commission = await self._get_source(source_commission_id)

        existing = await self.sub_commission_repo.get_by_source(commission.id)
        if existing:
            return SubCommissionResult(
                success=True,
                sub_commission_id=existing.id,
                sub_commission_amount_cents=existing.sub_commission_amount_cents,
            )

        sub_affiliate = await self.affiliate_repo.get_by_id(commission.affiliate_id)
        if not sub_affiliate or not sub_affiliate.referred_by_affiliate_id:
            return SubCommissionResult(success=False, reason=DeclineReason.NOT_A_SUB_AFFILIATE)

        parent = await self.affiliate_repo.get_by_id_for_update(sub_affiliate.referred_by_affiliate_id)
        if not parent:
            return SubCommissionResult(success=False, reason=DeclineReason.PARENT_AFFILIATE_NOT_FOUND)

        campaign = await self.campaign_repo.get_by_id(parent.campaign_id)
        if not campaign or not campaign.has_recruitment_commission:
            return SubCommissionResult(success=False, reason=DeclineReason.SUB_COMMISSION_NOT_ENABLED)

        percent = campaign.sub_affiliate_commission_percent
        amount = calculate_sub_commission(commission.commission_amount_cents, percent)
        if amount <= 0:
            return SubCommissionResult(success=False, reason=DeclineReason.COMMISSION_TOO_SMALL)

        sub_commission = SubAffiliateCommission(
            parent_affiliate_id=parent.id,
            sub_affiliate_id=sub_affiliate.id,
            source_commission_id=commission.id,
            source_commission_amount_cents=commission.commission_amount_cents,
            sub_commission_amount_cents=amount,
            sub_commission_percent=percent,
            currency=commission.currency,
            status=CommissionStatus.PENDING.value,
            due_at=commission.due_at,
        )
        self.sub_commission_repo.add(sub_commission)

        parent.total_sub_commissions_cents += amount
        parent.pending_sub_commissions_cents += amount
        await self.session.flush()

        logger.info(
            f"Sub-commission {amount} cents for parent {parent.code} from commission {commission.id}",
            extra={"affiliate_id": parent.id, "commission_id": commission.id},
        )
        return SubCommissionResult(
            success=True,
            sub_commission_id=sub_commission.id,
            sub_commission_amount_cents=amount,
        )

    async def on_commission_reversed(
        self,
        source_commission_id: int,
        reason: str,
    ) -> Optional[SubAffiliateCommission]:
        """
        Reverse the derived commission of a reversed source commission.

        The parent's pending or paid total is decremented according to the
        derived record's status before the reversal.

        Returns:
            The reversed record, or None if there was nothing to reverse
        """
        sub_commission = await self.sub_commission_repo.get_by_source(source_commission_id, for_update=True)
        if not sub_commission or sub_commission.status == CommissionStatus.REVERSED.value:
            return None

        previous_status = sub_commission.status
        amount = sub_commission.sub_commission_amount_cents

        sub_commission.status = CommissionStatus.REVERSED.value
        sub_commission.reversed_at = utcnow()
        sub_commission.reversal_reason = reason

        parent = await self.affiliate_repo.get_by_id_for_update(sub_commission.parent_affiliate_id)
        if parent:
            if previous_status in UNPAID_STATUSES:
                parent.pending_sub_commissions_cents = max(0, parent.pending_sub_commissions_cents - amount)
            elif previous_status == CommissionStatus.PAID.value:
                parent.paid_sub_commissions_cents = max(0, parent.paid_sub_commissions_cents - amount)
        await self.session.flush()

        logger.info(
            f"Reversed sub-commission {sub_commission.id} ({previous_status}) for source {source_commission_id}",
            extra={"affiliate_id": sub_commission.parent_affiliate_id, "commission_id": source_commission_id},
        )
        return sub_commission

    async def on_commission_approved(self, source_commission_id: int) -> Optional[SubAffiliateCommission]:
        """Mirror source approval onto the derived commission."""
        sub_commission = await self.sub_commission_repo.get_by_source(source_commission_id)
        if not sub_commission or sub_commission.status != CommissionStatus.PENDING.value:
            return None
        sub_commission.status = CommissionStatus.APPROVED.value
        await self.session.flush()
        return sub_commission

    async def on_commission_paid(self, source_commission_id: int) -> Optional[SubAffiliateCommission]:
        """Mirror source payout, moving the amount from pending to paid for the parent."""
        sub_commission = await self.sub_commission_repo.get_by_source(source_commission_id, for_update=True)
        if not sub_commission or sub_commission.status not in UNPAID_STATUSES:
            return None

        amount = sub_commission.sub_commission_amount_cents
        sub_commission.status = CommissionStatus.PAID.value
        sub_commission.paid_at = utcnow()

        parent = await self.affiliate_repo.get_by_id_for_update(sub_commission.parent_affiliate_id)
        if parent:
            parent.pending_sub_commissions_cents = max(0, parent.pending_sub_commissions_cents - amount)
            parent.paid_sub_commissions_cents += amount
        await self.session.flush()
        return sub_commission

    async def list_for_parent(
        self,
        parent_affiliate_id: int,
        status: Optional[CommissionStatus] = None,
    ) -> List[SubAffiliateCommission]:
        """Derived commissions earned by a parent affiliate."""
        return await self.sub_commission_repo.get_all_by_parent(parent_affiliate_id, status)
