"""Recruitment funnel: affiliates recruiting other affiliates."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.dto import DeclineReason, RecruitmentClickResult
from core.exceptions import AffiliateNotFoundError
from core.time_utils import add_days, utcnow
from database.models import Affiliate, Campaign, RecruitmentReferralStatus
from database.repositories import AffiliateRepository, CampaignRepository, RecruitmentReferralRepository

logger = logging.getLogger(__name__)


def _cap_reached(recruiter: Affiliate, campaign: Campaign) -> bool:
    """Cap counts every registered recruit, approved or not."""
    cap = campaign.max_sub_affiliates_per_affiliate
    return cap is not None and recruiter.total_recruits >= cap


class RecruitmentFunnel:
    """Service for the affiliate recruitment funnel."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.recruitment_repo = RecruitmentReferralRepository(session)

    async def track_recruitment_click(
        self,
        recruitment_code: str,
        landing_page: Optional[str] = None,
    ) -> RecruitmentClickResult:
        """
        Record a click on a recruitment link.

        The recruiter row is locked for the whole check-and-insert so a burst
        of clicks cannot slip past the recruit cap.
        """
        recruiter = await self.affiliate_repo.get_by_recruitment_code(recruitment_code, for_update=True)
        if not recruiter:
            return RecruitmentClickResult(success=False, error=DeclineReason.INVALID_RECRUITMENT_CODE)
        if not recruiter.is_approved:
            return RecruitmentClickResult(success=False, error=DeclineReason.AFFILIATE_NOT_APPROVED)

        campaign = await self.campaign_repo.get_by_id(recruiter.campaign_id)
        if not campaign:
            return RecruitmentClickResult(success=False, error=DeclineReason.CAMPAIGN_NOT_FOUND)
        if not campaign.affiliate_recruitment_enabled:
            return RecruitmentClickResult(success=False, error=DeclineReason.RECRUITMENT_NOT_ENABLED)
        if _cap_reached(recruiter, campaign):
            logger.info(
                f"Recruiter {recruiter.code} reached cap of {campaign.max_sub_affiliates_per_affiliate}",
                extra={"affiliate_id": recruiter.id},
            )
            return RecruitmentClickResult(success=False, error=DeclineReason.MAX_SUB_AFFILIATES_REACHED)

        referral = await self.recruitment_repo.create(
            recruiting_affiliate_id=recruiter.id,
            expires_at=add_days(utcnow(), campaign.recruitment_cookie_days),
            landing_page=landing_page or "/affiliates",
        )
        logger.info(
            f"Tracked recruitment click for {recruiter.code}",
            extra={"affiliate_id": recruiter.id, "referral_id": referral.referral_id},
        )
        return RecruitmentClickResult(success=True, referral_token=referral.referral_id)

    async def consume_for_registration(
        self,
        referral_token: str,
        new_affiliate: Affiliate,
    ) -> Optional[Affiliate]:
        """
        Consume a recruitment token while a new affiliate registers.

        Sets the recruit's parent back-reference and counts the recruit
        against the parent's cap. Invalid, expired or already consumed tokens
        are ignored.

        Returns:
            The recruiting parent, or None if the token was not usable
        """
        referral = await self.recruitment_repo.get_by_token(referral_token)
        if not referral or referral.status != RecruitmentReferralStatus.CLICKED.value:
            logger.info("Recruitment token unknown or already used, registering unattributed")
            return None
        now = utcnow()
        if now >= referral.expires_at:
            logger.info(f"Recruitment referral {referral.id} expired, registering unattributed")
            return None

        parent = await self.affiliate_repo.get_by_id_for_update(referral.recruiting_affiliate_id)
        if not parent or parent.id == new_affiliate.id or parent.user_id == new_affiliate.user_id:
            return None

        campaign = await self.campaign_repo.get_by_id(parent.campaign_id)
        if not campaign or not campaign.affiliate_recruitment_enabled or _cap_reached(parent, campaign):
            logger.info(
                f"Recruiter {parent.code} can no longer recruit, registering unattributed",
                extra={"affiliate_id": parent.id},
            )
            return None

        new_affiliate.referred_by_affiliate_id = parent.id
        parent.total_recruits += 1
        referral.status = RecruitmentReferralStatus.SIGNED_UP.value
        referral.signed_up_at = now
        referral.recruited_affiliate_id = new_affiliate.id
        await self.session.flush()

        logger.info(
            f"Affiliate {new_affiliate.code} recruited by {parent.code}",
            extra={"affiliate_id": parent.id, "referral_id": referral.referral_id},
        )
        return parent

    async def on_affiliate_approved(self, affiliate_id: int) -> bool:
        """
        Count a newly approved recruit as active for its parent.

        Returns:
            True if a parent was updated

        Raises:
            AffiliateNotFoundError: Unknown affiliate id
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if not affiliate:
            raise AffiliateNotFoundError(affiliate_id)
        if not affiliate.referred_by_affiliate_id:
            return False

        parent = await self.affiliate_repo.get_by_id_for_update(affiliate.referred_by_affiliate_id)
        if not parent:
            return False
        parent.active_recruits += 1

        referral = await self.recruitment_repo.get_by_recruited_affiliate(affiliate.id)
        if referral:
            referral.status = RecruitmentReferralStatus.APPROVED.value
            referral.approved_at = utcnow()
        await self.session.flush()

        logger.info(
            f"Recruit {affiliate.code} approved, parent {parent.code} has {parent.active_recruits} active",
            extra={"affiliate_id": parent.id},
        )
        return True
