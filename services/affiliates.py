"""Affiliate registry: registration, status machine and commission overrides."""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.config import settings
from core.exceptions import (
    AffiliateAlreadyExistsError,
    AffiliateNotFoundError,
    CampaignNotFoundError,
    InvalidStatusTransitionError,
    ValidationError,
)
from database.models import Affiliate, AffiliateStatus, CommissionType
from database.repositories import AffiliateRepository, CampaignRepository
from services.recruitment import RecruitmentFunnel

logger = logging.getLogger(__name__)


class AffiliateRegistry:
    """Service for affiliate lifecycle operations."""

    def __init__(self, session: AsyncSession, recruitment: Optional[RecruitmentFunnel] = None):
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.recruitment = recruitment or RecruitmentFunnel(session)

    async def register(
        self,
        user_id: str,
        campaign_id: Optional[int] = None,
        custom_code: Optional[str] = None,
        display_name: Optional[str] = None,
        payout_email: Optional[str] = None,
        recruitment_referral_token: Optional[str] = None,
    ) -> Affiliate:
        """
        Register a user as a pending affiliate.

        Args:
            user_id: External user id (immutable once registered)
            campaign_id: Campaign to join, defaults to the default campaign
            custom_code: Requested tracking code, stored upper-case
            display_name: Public name
            payout_email: Where payouts go
            recruitment_referral_token: Token from a recruitment link click

        Returns:
            New affiliate

        Raises:
            AffiliateAlreadyExistsError: User is already an affiliate
            CampaignNotFoundError: No such campaign and no default
            ValidationError: Custom code is malformed or taken
        """
        if await self.affiliate_repo.get_by_user_id(user_id):
            raise AffiliateAlreadyExistsError(user_id)

        if campaign_id is not None:
            campaign = await self.campaign_repo.get_by_id(campaign_id)
        else:
            campaign = await self.campaign_repo.get_default()
        if not campaign:
            raise CampaignNotFoundError(campaign_id)

        if custom_code:
            code = custom_code.strip().upper()
            if not code.isalnum() or not 3 <= len(code) <= 50:
                raise ValidationError("code", "must be 3-50 letters or digits")
            if await self.affiliate_repo.code_exists(code):
                raise ValidationError("code", f"'{code}' is already taken")
        else:
            code = await self.affiliate_repo.generate_unique_code(settings.affiliate_code_length)

        recruitment_code = await self.affiliate_repo.generate_unique_code(settings.affiliate_code_length)
        while recruitment_code == code:
            recruitment_code = await self.affiliate_repo.generate_unique_code(settings.affiliate_code_length)

        affiliate = await self.affiliate_repo.create(
            user_id=user_id,
            campaign_id=campaign.id,
            code=code,
            recruitment_code=recruitment_code,
            display_name=display_name,
            payout_email=payout_email,
        )

        if recruitment_referral_token:
            await self.recruitment.consume_for_registration(recruitment_referral_token, affiliate)

        logger.info(
            f"Registered affiliate {affiliate.code} for user {user_id}",
            extra={"affiliate_id": affiliate.id},
        )
        return affiliate

    async def _get(self, affiliate_id: int) -> Affiliate:
        affiliate = await self.affiliate_repo.get_by_id_for_update(affiliate_id)
        if not affiliate:
            raise AffiliateNotFoundError(affiliate_id)
        return affiliate

    async def _transition(self, affiliate: Affiliate, target: AffiliateStatus) -> Affiliate:
        if not affiliate.can_transition_to(target):
            raise InvalidStatusTransitionError("affiliate", affiliate.status, target.value)
        previous = affiliate.status
        affiliate.status = target.value
        await self.session.flush()
        logger.info(
            f"Affiliate {affiliate.code}: {previous} -> {target.value}",
            extra={"affiliate_id": affiliate.id},
        )
        return affiliate

    async def approve(self, affiliate_id: int) -> Affiliate:
        """Approve a pending affiliate and count it as an active recruit."""
        affiliate = await self._get(affiliate_id)
        if affiliate.status != AffiliateStatus.PENDING.value:
            raise InvalidStatusTransitionError("affiliate", affiliate.status, AffiliateStatus.APPROVED.value)
        await self._transition(affiliate, AffiliateStatus.APPROVED)
        await self.recruitment.on_affiliate_approved(affiliate.id)
        return affiliate

    async def reject(self, affiliate_id: int) -> Affiliate:
        """Reject a pending affiliate."""
        return await self._transition(await self._get(affiliate_id), AffiliateStatus.REJECTED)

    async def suspend(self, affiliate_id: int) -> Affiliate:
        """Suspend an approved affiliate. Suspending twice is a no-op."""
        affiliate = await self._get(affiliate_id)
        if affiliate.status == AffiliateStatus.SUSPENDED.value:
            return affiliate
        return await self._transition(affiliate, AffiliateStatus.SUSPENDED)

    async def reactivate(self, affiliate_id: int) -> Affiliate:
        """Bring a suspended affiliate back to approved."""
        affiliate = await self._get(affiliate_id)
        if affiliate.status != AffiliateStatus.SUSPENDED.value:
            raise InvalidStatusTransitionError("affiliate", affiliate.status, AffiliateStatus.APPROVED.value)
        return await self._transition(affiliate, AffiliateStatus.APPROVED)

    async def set_custom_commission(
        self,
        affiliate_id: int,
        commission_type: CommissionType,
        value: float,
    ) -> Affiliate:
        """Override the campaign rate for one affiliate."""
        commission_type = CommissionType(commission_type)
        if value < 0 or (commission_type == CommissionType.PERCENTAGE and value > 100):
            raise ValidationError("value", "percentage must be 0-100, fixed must be non-negative")

        affiliate = await self._get(affiliate_id)
        affiliate.custom_commission_type = commission_type.value
        affiliate.custom_commission_value = value
        await self.session.flush()
        return affiliate

    async def clear_custom_commission(self, affiliate_id: int) -> Affiliate:
        """Fall back to the campaign rate."""
        affiliate = await self._get(affiliate_id)
        affiliate.custom_commission_type = None
        affiliate.custom_commission_value = None
        await self.session.flush()
        return affiliate

    async def get_by_code(self, code: str) -> Optional[Affiliate]:
        """Get affiliate by tracking code (case-insensitive)."""
        return await self.affiliate_repo.get_by_code(code)

    async def get_by_user_id(self, user_id: str) -> Optional[Affiliate]:
        """Get affiliate by external user id."""
        return await self.affiliate_repo.get_by_user_id(user_id)

    async def list_sub_affiliates(self, parent_id: int) -> List[Affiliate]:
        """Affiliates recruited by a parent."""
        return await self.affiliate_repo.list_by_parent(parent_id)
