"""
Referral tracker: the click -> signup -> conversion funnel.

Every entry point reachable by untrusted input returns a decline value
instead of raising. Attribution entry points share one fraud gate: an
affiliate can never be credited for their own external user id.
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.dto import AttributionResult, DeclineReason, RefereeDiscount
from core.exceptions import ReferralNotFoundError
from core.time_utils import add_days, utcnow
from database.models import Affiliate, Campaign, EventType, Referral, ReferralStatus
from database.models.referral import EXPIRABLE_STATUSES
from database.repositories import AffiliateRepository, CampaignRepository, ReferralRepository
from services.analytics import AnalyticsService

logger = logging.getLogger(__name__)


class ReferralTracker:
    """Service for referral attribution."""

    def __init__(self, session: AsyncSession, analytics: Optional[AnalyticsService] = None):
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.analytics = analytics or AnalyticsService(session)

    async def resolve_active_affiliate(
        self,
        affiliate_code: str,
        for_update: bool = False,
    ) -> tuple[Optional[Affiliate], Optional[Campaign], Optional[DeclineReason]]:
        """
        Resolve a tracking code to an approved affiliate on an active campaign.

        Returns:
            (affiliate, campaign, None) on success, otherwise a decline reason
            as the third element.
        """
        affiliate = await self.affiliate_repo.get_by_code(affiliate_code, for_update=for_update)
        if not affiliate:
            return None, None, DeclineReason.INVALID_AFFILIATE_CODE
        if not affiliate.is_approved:
            return affiliate, None, DeclineReason.AFFILIATE_NOT_APPROVED

        campaign = await self.campaign_repo.get_by_id(affiliate.campaign_id)
        if not campaign or not campaign.is_active:
            return affiliate, campaign, DeclineReason.CAMPAIGN_INACTIVE
        return affiliate, campaign, None

    @staticmethod
    def _is_self_referral(affiliate: Affiliate, user_id: Optional[str]) -> bool:
        if user_id is not None and affiliate.user_id == user_id:
            logger.warning(
                f"Self-referral blocked: affiliate {affiliate.code} and user {user_id}",
                extra={"affiliate_id": affiliate.id},
            )
            return True
        return False

    async def track_click(
        self,
        affiliate_code: str,
        landing_page: str = "/",
        sub_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Record a click on an affiliate link.

        Args:
            affiliate_code: Tracking code from the link (any case)
            landing_page: Page the visitor landed on
            sub_id: Optional affiliate sub-tracking id

        Returns:
            New referral token, or None when the code cannot earn
        """
        affiliate, campaign, reason = await self.resolve_active_affiliate(affiliate_code, for_update=True)
        if reason:
            logger.info(f"Click declined for code '{affiliate_code}': {reason.value}")
            return None

        now = utcnow()
        referral = await self.referral_repo.create(
            affiliate_id=affiliate.id,
            expires_at=add_days(now, campaign.cookie_duration_days),
            status=ReferralStatus.CLICKED,
            landing_page=landing_page,
            sub_id=sub_id,
            clicked_at=now,
        )
        affiliate.total_clicks += 1
        await self.analytics.record_event(
            affiliate.id,
            EventType.CLICK,
            {"referral_id": referral.referral_id, "landing_page": referral.landing_page, "sub_id": sub_id},
        )
        await self.session.flush()

        logger.info(
            f"Tracked click for affiliate {affiliate.code}",
            extra={"affiliate_id": affiliate.id, "referral_id": referral.referral_id},
        )
        return referral.referral_id

    async def attribute_signup(self, referral_token: str, user_id: str) -> AttributionResult:
        """
        Attach a newly registered user to a clicked referral.

        Declines when the token is unknown, the cookie window has closed
        (the referral is flipped to expired on the way), the referral is past
        the clicked stage, or the user is the affiliate themself.
        """
        referral = await self.referral_repo.get_by_token(referral_token)
        if not referral:
            return AttributionResult.declined(DeclineReason.REFERRAL_NOT_FOUND)

        now = utcnow()
        if referral.is_expired(now):
            if referral.status in EXPIRABLE_STATUSES:
                referral.status = ReferralStatus.EXPIRED.value
                await self.session.flush()
                logger.info(f"Referral {referral.id} expired on signup attempt")
            return AttributionResult.declined(DeclineReason.REFERRAL_EXPIRED)

        if referral.status != ReferralStatus.CLICKED.value:
            return AttributionResult.declined(DeclineReason.REFERRAL_NOT_CLICKED)

        affiliate = await self.affiliate_repo.get_by_id_for_update(referral.affiliate_id)
        if not affiliate:
            return AttributionResult.declined(DeclineReason.INVALID_AFFILIATE_CODE)
        if self._is_self_referral(affiliate, user_id):
            return AttributionResult.declined(DeclineReason.SELF_REFERRAL)

        existing = await self.referral_repo.get_by_user_id(user_id)
        if existing:
            return self._already_attributed(existing)

        referral.user_id = user_id
        referral.status = ReferralStatus.SIGNED_UP.value
        referral.signed_up_at = now
        affiliate.total_signups += 1
        await self.analytics.record_event(
            affiliate.id, EventType.SIGNUP, {"referral_id": referral.referral_id, "user_id": user_id}
        )
        await self.session.flush()

        logger.info(
            f"Attributed user {user_id} to affiliate {affiliate.code}",
            extra={"affiliate_id": affiliate.id, "referral_id": referral.referral_id},
        )
        return AttributionResult(
            success=True,
            referral_id=referral.id,
            referral_token=referral.referral_id,
            affiliate_id=affiliate.id,
        )

    async def attribute_signup_by_code(
        self,
        affiliate_code: str,
        user_id: str,
        landing_page: Optional[str] = None,
    ) -> AttributionResult:
        """
        Attribute a signup directly from a code, without a tracked click.

        First attribution wins: a user who already has a referral gets that
        referral back with ``already_attributed=True``, and ``affiliate_id``
        names the affiliate who actually holds the attribution.
        """
        affiliate, campaign, reason = await self.resolve_active_affiliate(affiliate_code, for_update=True)
        if reason:
            return AttributionResult.declined(reason)
        if self._is_self_referral(affiliate, user_id):
            return AttributionResult.declined(DeclineReason.SELF_REFERRAL)

        existing = await self.referral_repo.get_by_user_id(user_id)
        if existing:
            if existing.affiliate_id != affiliate.id:
                logger.info(
                    f"User {user_id} already attributed to affiliate {existing.affiliate_id}, "
                    f"ignoring code {affiliate.code}"
                )
            return self._already_attributed(existing)

        now = utcnow()
        referral = await self.referral_repo.create(
            affiliate_id=affiliate.id,
            expires_at=add_days(now, campaign.cookie_duration_days),
            status=ReferralStatus.SIGNED_UP,
            landing_page=landing_page or "/",
            user_id=user_id,
            clicked_at=now,
            signed_up_at=now,
        )
        affiliate.total_clicks += 1
        affiliate.total_signups += 1
        await self.analytics.record_event(
            affiliate.id,
            EventType.SIGNUP,
            {"referral_id": referral.referral_id, "user_id": user_id, "source": "code"},
        )
        await self.session.flush()

        logger.info(
            f"Attributed user {user_id} to affiliate {affiliate.code} by code",
            extra={"affiliate_id": affiliate.id, "referral_id": referral.referral_id},
        )
        return AttributionResult(
            success=True,
            referral_id=referral.id,
            referral_token=referral.referral_id,
            affiliate_id=affiliate.id,
        )

    @staticmethod
    def _already_attributed(referral: Referral) -> AttributionResult:
        return AttributionResult(
            success=True,
            referral_id=referral.id,
            referral_token=referral.referral_id,
            affiliate_id=referral.affiliate_id,
            already_attributed=True,
        )

    async def link_payment_customer(
        self,
        payment_customer_id: str,
        user_id: Optional[str] = None,
        affiliate_code: Optional[str] = None,
    ) -> Optional[Referral]:
        """
        Link a payment customer to a referral once checkout has created one.

        Strategies, in order:
            1. The user's existing referral, if it has no customer yet.
            2. A new referral from ``affiliate_code`` when neither the customer
               nor the user is attributed already.

        Unmatched input is a silent no-op returning None.
        """
        if user_id:
            referral = await self.referral_repo.get_by_user_id(user_id)
            if referral and not referral.payment_customer_id:
                affiliate = await self.affiliate_repo.get_by_id(referral.affiliate_id)
                if affiliate and self._is_self_referral(affiliate, user_id):
                    return None
                referral.payment_customer_id = payment_customer_id
                await self.session.flush()
                logger.info(
                    f"Linked customer {payment_customer_id} to referral {referral.id}",
                    extra={"affiliate_id": referral.affiliate_id, "referral_id": referral.referral_id},
                )
                return referral

        if not affiliate_code:
            return None

        affiliate, campaign, reason = await self.resolve_active_affiliate(affiliate_code, for_update=True)
        if reason:
            logger.debug(f"Checkout code '{affiliate_code}' not linkable: {reason.value}")
            return None
        if self._is_self_referral(affiliate, user_id):
            return None

        if await self.referral_repo.get_by_payment_customer_id(payment_customer_id):
            return None
        if user_id and await self.referral_repo.get_by_user_id(user_id):
            return None

        now = utcnow()
        status = ReferralStatus.SIGNED_UP if user_id else ReferralStatus.CLICKED
        referral = await self.referral_repo.create(
            affiliate_id=affiliate.id,
            expires_at=add_days(now, campaign.cookie_duration_days),
            status=status,
            landing_page="/checkout",
            user_id=user_id,
            payment_customer_id=payment_customer_id,
            clicked_at=now,
            signed_up_at=now if user_id else None,
        )
        affiliate.total_clicks += 1
        if user_id:
            affiliate.total_signups += 1
        await self.analytics.record_event(
            affiliate.id,
            EventType.SIGNUP if user_id else EventType.CLICK,
            {"referral_id": referral.referral_id, "user_id": user_id, "source": "checkout"},
        )
        await self.session.flush()

        logger.info(
            f"Created checkout referral for customer {payment_customer_id} (affiliate {affiliate.code})",
            extra={"affiliate_id": affiliate.id, "referral_id": referral.referral_id},
        )
        return referral

    async def convert(self, referral_id: int) -> Referral:
        """
        Mark a referral converted. Idempotent.

        Only called by the commission engine after it created a commission.

        Raises:
            ReferralNotFoundError: Unknown internal referral id
        """
        referral = await self.referral_repo.get_by_id(referral_id)
        if not referral:
            raise ReferralNotFoundError(referral_id)
        if referral.status == ReferralStatus.CONVERTED.value:
            return referral

        affiliate = await self.affiliate_repo.get_by_id_for_update(referral.affiliate_id)
        referral.status = ReferralStatus.CONVERTED.value
        referral.converted_at = utcnow()
        if affiliate:
            affiliate.total_conversions += 1
        await self.session.flush()

        logger.info(
            f"Referral {referral.id} converted",
            extra={"affiliate_id": referral.affiliate_id, "referral_id": referral.referral_id},
        )
        return referral

    async def expire_stale_referrals(self, batch_size: int = 100) -> int:
        """
        Flip one batch of referrals whose window has closed to expired.

        Converted and already-expired referrals are never touched, so the
        sweep is safe to repeat.

        Returns:
            Number of referrals expired in this batch
        """
        stale = await self.referral_repo.get_stale(utcnow(), limit=batch_size)
        for referral in stale:
            referral.status = ReferralStatus.EXPIRED.value
        await self.session.flush()

        if stale:
            logger.info(f"Expired {len(stale)} stale referrals")
        return len(stale)

    async def get_referee_discount(
        self,
        referral_token: Optional[str] = None,
        user_id: Optional[str] = None,
        affiliate_code: Optional[str] = None,
    ) -> Optional[RefereeDiscount]:
        """
        Discount a referred customer is entitled to, if any.

        Resolution order is token, then user id, then code; the first
        identifier that resolves wins. Token and user id lookups respect the
        referral's expiry. A bare affiliate code does not expire.
        """
        now = utcnow()
        affiliate = None

        if referral_token:
            referral = await self.referral_repo.get_by_token(referral_token)
            if referral:
                if referral.is_expired(now):
                    return None
                affiliate = await self.affiliate_repo.get_by_id(referral.affiliate_id)

        if affiliate is None and user_id:
            referral = await self.referral_repo.get_by_user_id(user_id)
            if referral:
                if referral.is_expired(now):
                    return None
                affiliate = await self.affiliate_repo.get_by_id(referral.affiliate_id)

        if affiliate is None and affiliate_code:
            affiliate = await self.affiliate_repo.get_by_code(affiliate_code)

        if not affiliate or not affiliate.is_approved:
            return None

        campaign = await self.campaign_repo.get_by_id(affiliate.campaign_id)
        if not campaign or not campaign.is_active or not campaign.has_referee_discount:
            return None

        return RefereeDiscount(
            discount_type=campaign.referee_discount_type,
            discount_value=campaign.referee_discount_value,
            coupon_id=campaign.referee_coupon_id,
            affiliate_code=affiliate.code,
            affiliate_display_name=affiliate.display_name,
        )

    async def list_by_affiliate(
        self,
        affiliate_id: int,
        status: Optional[ReferralStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Referral]:
        """Referrals of an affiliate, newest first."""
        return await self.referral_repo.get_all_by_affiliate(affiliate_id, status, limit)
