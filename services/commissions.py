"""
Commission engine: paid invoices in, commissions out.

``create_from_paid_invoice`` and ``reverse_by_payment_charge`` are driven by
at-least-once webhook delivery. Both are idempotent and report every decline
as a value. Status moves after creation (approve, processing, paid) belong to
the payout side and raise on contract violations.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.dto import CommissionResult, CommissionReversal, DeclineReason
from core.exceptions import CommissionNotFoundError, InvalidStatusTransitionError
from core.time_utils import add_days, months_elapsed, utcnow
from database.models import (
    Affiliate,
    Campaign,
    Commission,
    CommissionDuration,
    CommissionStatus,
    CommissionType,
    EventType,
    PayoutTerm,
    Referral,
    ReferralStatus,
)
from database.models.commission import UNPAID_STATUSES
from database.repositories import (
    AffiliateRepository,
    CampaignRepository,
    CommissionRepository,
    ReferralRepository,
)
from services.analytics import AnalyticsService
from services.referrals import ReferralTracker
from services.sub_affiliates import SubAffiliateCascade

logger = logging.getLogger(__name__)

DEFAULT_REVERSAL_REASON = "Charge refunded"


def calculate_commission(sale_amount_cents: int, commission_type: str, commission_value: float) -> int:
    """
    Calculate commission amount in cents.

    Args:
        sale_amount_cents: Amount paid
        commission_type: percentage or fixed
        commission_value: Percent (0-100) or flat cents

    Returns:
        Commission in cents

    Example:
        10000 cents x 20% = 2000 cents
    """
    if CommissionType(commission_type) == CommissionType.FIXED:
        return int(commission_value)
    amount = Decimal(sale_amount_cents) * Decimal(str(commission_value)) / Decimal(100)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CommissionEngine:
    """Service creating and reversing commissions."""

    # Caps applied when a limited duration has no explicit value
    DEFAULT_MAX_PAYMENTS = 1
    DEFAULT_MAX_MONTHS = 12

    def __init__(
        self,
        session: AsyncSession,
        referral_tracker: Optional[ReferralTracker] = None,
        cascade: Optional[SubAffiliateCascade] = None,
        analytics: Optional[AnalyticsService] = None,
    ):
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.commission_repo = CommissionRepository(session)
        self.analytics = analytics or AnalyticsService(session)
        self.referral_tracker = referral_tracker or ReferralTracker(session, self.analytics)
        self.cascade = cascade or SubAffiliateCascade(session)

    async def create_from_paid_invoice(
        self,
        invoice_id: str,
        customer_id: str,
        amount_paid_cents: int,
        currency: str = "usd",
        subscription_id: Optional[str] = None,
        charge_id: Optional[str] = None,
        product_id: Optional[str] = None,
        affiliate_code: Optional[str] = None,
    ) -> CommissionResult:
        """
        Create a commission for a paid invoice, or decline.

        A second delivery of the same invoice returns the existing commission
        with ``duplicate=True``.

        Args:
            invoice_id: Processor invoice id (dedup key)
            customer_id: Processor customer id used to find the referral
            amount_paid_cents: Amount actually paid
            currency: ISO currency code
            subscription_id: Subscription, enables duration limits
            charge_id: Charge that a later refund will reference
            product_id: Product checked against campaign product lists
            affiliate_code: Code from invoice metadata, used when no referral exists

        Returns:
            CommissionResult describing the outcome
        """
        if amount_paid_cents <= 0:
            return CommissionResult.declined(DeclineReason.NON_POSITIVE_AMOUNT)

        referral = await self.referral_repo.get_by_payment_customer_id(customer_id)
        if not referral and affiliate_code:
            referral = await self._synthesize_referral(affiliate_code, customer_id)
        if not referral:
            logger.debug(f"No attribution for invoice {invoice_id}", extra={"invoice_id": invoice_id})
            return CommissionResult.declined(DeclineReason.NO_ATTRIBUTION)

        affiliate = await self.affiliate_repo.get_by_id_for_update(referral.affiliate_id)
        if not affiliate or not affiliate.is_approved:
            return CommissionResult.declined(DeclineReason.AFFILIATE_NOT_APPROVED)

        campaign = await self.campaign_repo.get_by_id(affiliate.campaign_id)
        if not campaign or not campaign.is_active:
            return CommissionResult.declined(DeclineReason.CAMPAIGN_INACTIVE)

        existing = await self.commission_repo.get_by_invoice_id(invoice_id)
        if existing:
            logger.info(
                f"Invoice {invoice_id} already has commission {existing.id}",
                extra={"invoice_id": invoice_id, "commission_id": existing.id},
            )
            return CommissionResult(
                duplicate=True,
                commission_id=existing.id,
                affiliate_id=existing.affiliate_id,
                affiliate_code=affiliate.code,
                commission_amount_cents=existing.commission_amount_cents,
                currency=existing.currency,
            )

        payment_number = None
        if subscription_id:
            payment_number, reason = await self._check_duration(campaign, subscription_id)
            if reason:
                logger.info(
                    f"Invoice {invoice_id} declined: {reason.value}",
                    extra={"invoice_id": invoice_id, "affiliate_id": affiliate.id},
                )
                return CommissionResult.declined(reason)

        reason = self._check_product(campaign, product_id)
        if reason:
            logger.info(f"Invoice {invoice_id} declined: {reason.value}", extra={"invoice_id": invoice_id})
            return CommissionResult.declined(reason)

        commission_type, commission_rate = self._resolve_rate(affiliate, campaign)
        amount = calculate_commission(amount_paid_cents, commission_type, commission_rate)

        now = utcnow()
        commission = Commission(
            affiliate_id=affiliate.id,
            referral_id=referral.id,
            payment_customer_id=customer_id,
            invoice_id=invoice_id,
            charge_id=charge_id,
            subscription_id=subscription_id,
            product_id=product_id,
            payment_number=payment_number,
            sale_amount_cents=amount_paid_cents,
            commission_amount_cents=amount,
            commission_rate=commission_rate,
            commission_type=commission_type,
            currency=currency.lower(),
            status=CommissionStatus.PENDING.value,
            due_at=add_days(now, PayoutTerm(campaign.payout_term).days),
            created_at=now,
        )
        self.commission_repo.add(commission)

        affiliate.total_revenue_cents += amount_paid_cents
        affiliate.total_commissions_cents += amount
        affiliate.pending_commissions_cents += amount
        await self.session.flush()

        await self.referral_tracker.convert(referral.id)
        await self.cascade.on_commission_created(commission.id)
        await self.analytics.record_event(
            affiliate.id,
            EventType.CONVERSION,
            {
                "commission_id": commission.id,
                "invoice_id": invoice_id,
                "sale_amount_cents": amount_paid_cents,
                "commission_amount_cents": amount,
            },
        )

        logger.info(
            f"Created commission {commission.id}: {amount} {commission.currency} for affiliate {affiliate.code}",
            extra={"affiliate_id": affiliate.id, "commission_id": commission.id, "invoice_id": invoice_id},
        )
        return CommissionResult(
            created=True,
            commission_id=commission.id,
            affiliate_id=affiliate.id,
            affiliate_code=affiliate.code,
            commission_amount_cents=amount,
            currency=commission.currency,
        )

    async def _synthesize_referral(self, affiliate_code: str, customer_id: str) -> Optional[Referral]:
        """
        Create a clicked referral for a checkout that was never tracked.

        The conversion is counted by ``convert`` once a commission exists, so
        an invoice declined by a later gate leaves no conversion behind.
        """
        affiliate, campaign, reason = await self.referral_tracker.resolve_active_affiliate(
            affiliate_code, for_update=True
        )
        if reason:
            logger.info(f"Invoice code '{affiliate_code}' not usable: {reason.value}")
            return None

        # A concurrent delivery may have linked the customer while we waited for the lock
        existing = await self.referral_repo.get_by_payment_customer_id(customer_id)
        if existing:
            return existing

        now = utcnow()
        referral = await self.referral_repo.create(
            affiliate_id=affiliate.id,
            expires_at=add_days(now, campaign.cookie_duration_days),
            status=ReferralStatus.CLICKED,
            landing_page="/checkout",
            payment_customer_id=customer_id,
            clicked_at=now,
        )
        affiliate.total_clicks += 1
        await self.analytics.record_event(
            affiliate.id,
            EventType.CLICK,
            {"referral_id": referral.referral_id, "source": "invoice"},
        )
        await self.session.flush()

        logger.info(
            f"Synthesized referral {referral.id} for customer {customer_id} from code {affiliate.code}",
            extra={"affiliate_id": affiliate.id, "referral_id": referral.referral_id},
        )
        return referral

    async def _check_duration(
        self,
        campaign: Campaign,
        subscription_id: str,
    ) -> tuple[int, Optional[DeclineReason]]:
        """
        Apply the campaign's subscription duration policy.

        Returns:
            (payment number of this invoice, decline reason or None)
        """
        prior_count, first = await self.commission_repo.get_subscription_history(subscription_id)
        payment_number = prior_count + 1

        duration = CommissionDuration(campaign.commission_duration)
        if duration == CommissionDuration.MAX_PAYMENTS:
            cap = campaign.commission_duration_value or self.DEFAULT_MAX_PAYMENTS
            if payment_number > cap:
                return payment_number, DeclineReason.MAX_PAYMENTS_REACHED
        elif duration == CommissionDuration.MAX_MONTHS and first is not None:
            cap = campaign.commission_duration_value or self.DEFAULT_MAX_MONTHS
            if months_elapsed(first.created_at, utcnow()) >= cap:
                return payment_number, DeclineReason.MAX_MONTHS_REACHED

        return payment_number, None

    @staticmethod
    def _check_product(campaign: Campaign, product_id: Optional[str]) -> Optional[DeclineReason]:
        if not product_id:
            return None
        if campaign.excluded_products and product_id in campaign.excluded_products:
            return DeclineReason.PRODUCT_EXCLUDED
        if campaign.allowed_products and product_id not in campaign.allowed_products:
            return DeclineReason.PRODUCT_NOT_ALLOWED
        return None

    @staticmethod
    def _resolve_rate(affiliate: Affiliate, campaign: Campaign) -> tuple[str, float]:
        """Affiliate override beats the campaign default."""
        if affiliate.has_custom_commission:
            return affiliate.custom_commission_type, affiliate.custom_commission_value
        return campaign.commission_type, campaign.commission_value

    async def reverse_by_payment_charge(
        self,
        charge_id: str,
        reason: Optional[str] = None,
    ) -> Optional[CommissionReversal]:
        """
        Reverse the commission of a refunded charge.

        Unknown charges and already reversed commissions are no-ops. The
        affiliate bucket to decrement is chosen from the status the
        commission had before the reversal.

        Returns:
            Reversal details, or None when nothing was reversed
        """
        commission = await self.commission_repo.get_by_charge_id(charge_id, for_update=True)
        if not commission:
            logger.debug(f"No commission for charge {charge_id}", extra={"charge_id": charge_id})
            return None
        if commission.is_reversed:
            logger.info(f"Commission {commission.id} already reversed", extra={"charge_id": charge_id})
            return None

        reason = reason or DEFAULT_REVERSAL_REASON
        previous_status = commission.status
        amount = commission.commission_amount_cents

        commission.status = CommissionStatus.REVERSED.value
        commission.reversed_at = utcnow()
        commission.reversal_reason = reason

        affiliate = await self.affiliate_repo.get_by_id_for_update(commission.affiliate_id)
        if affiliate:
            affiliate.total_commissions_cents = max(0, affiliate.total_commissions_cents - amount)
            if previous_status in UNPAID_STATUSES:
                affiliate.pending_commissions_cents = max(0, affiliate.pending_commissions_cents - amount)
            elif previous_status == CommissionStatus.PAID.value:
                affiliate.paid_commissions_cents = max(0, affiliate.paid_commissions_cents - amount)
        await self.session.flush()

        await self.cascade.on_commission_reversed(commission.id, reason)
        await self.analytics.record_event(
            commission.affiliate_id,
            EventType.REFUND,
            {"commission_id": commission.id, "charge_id": charge_id, "reason": reason},
        )

        logger.info(
            f"Reversed commission {commission.id} ({previous_status}): {reason}",
            extra={"affiliate_id": commission.affiliate_id, "commission_id": commission.id, "charge_id": charge_id},
        )
        return CommissionReversal(
            commission_id=commission.id,
            affiliate_id=commission.affiliate_id,
            commission_amount_cents=amount,
            previous_status=previous_status,
            reason=reason,
        )

    async def _get_for_transition(self, commission_id: int) -> Commission:
        commission = await self.commission_repo.get_by_id_for_update(commission_id)
        if not commission:
            raise CommissionNotFoundError(commission_id)
        return commission

    async def approve(self, commission_id: int) -> Commission:
        """
        Approve a pending commission for payout.

        Raises:
            CommissionNotFoundError: Unknown commission id
            InvalidStatusTransitionError: Commission is not pending
        """
        commission = await self._get_for_transition(commission_id)
        if commission.status != CommissionStatus.PENDING.value:
            raise InvalidStatusTransitionError("commission", commission.status, CommissionStatus.APPROVED.value)

        commission.status = CommissionStatus.APPROVED.value
        commission.approved_at = utcnow()
        await self.session.flush()
        await self.cascade.on_commission_approved(commission.id)
        return commission

    async def mark_processing(self, commission_id: int, payout_reference: Optional[str] = None) -> Commission:
        """Include an approved commission in a payout batch."""
        commission = await self._get_for_transition(commission_id)
        if commission.status != CommissionStatus.APPROVED.value:
            raise InvalidStatusTransitionError("commission", commission.status, CommissionStatus.PROCESSING.value)

        commission.status = CommissionStatus.PROCESSING.value
        if payout_reference:
            commission.payout_reference = payout_reference
        await self.session.flush()
        return commission

    async def mark_paid(self, commission_id: int, payout_reference: Optional[str] = None) -> Commission:
        """
        Mark an approved or processing commission as paid.

        Moves the amount from the affiliate's pending total to the paid total
        and mirrors the payout onto the derived sub-commission.

        Raises:
            CommissionNotFoundError: Unknown commission id
            InvalidStatusTransitionError: Commission is not approved or processing
        """
        commission = await self._get_for_transition(commission_id)
        if commission.status not in (CommissionStatus.APPROVED.value, CommissionStatus.PROCESSING.value):
            raise InvalidStatusTransitionError("commission", commission.status, CommissionStatus.PAID.value)

        amount = commission.commission_amount_cents
        commission.status = CommissionStatus.PAID.value
        commission.paid_at = utcnow()
        if payout_reference:
            commission.payout_reference = payout_reference

        affiliate = await self.affiliate_repo.get_by_id_for_update(commission.affiliate_id)
        if affiliate:
            affiliate.pending_commissions_cents = max(0, affiliate.pending_commissions_cents - amount)
            affiliate.paid_commissions_cents += amount
        await self.session.flush()

        await self.cascade.on_commission_paid(commission.id)
        await self.analytics.record_event(
            commission.affiliate_id,
            EventType.PAYOUT,
            {"commission_id": commission.id, "amount_cents": amount, "payout_reference": commission.payout_reference},
        )
        logger.info(
            f"Commission {commission.id} paid",
            extra={"affiliate_id": commission.affiliate_id, "commission_id": commission.id},
        )
        return commission

    async def list_by_affiliate(
        self,
        affiliate_id: int,
        status: Optional[CommissionStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Commission]:
        """Commissions of an affiliate, newest first."""
        return await self.commission_repo.get_all_by_affiliate(affiliate_id, status, limit)

    async def get_pending_total(self, affiliate_id: int) -> int:
        """Unpaid, unreversed commission total in cents."""
        return await self.commission_repo.get_pending_total(affiliate_id)

    async def get_due_for_payout(self, affiliate_id: int) -> List[Commission]:
        """Approved commissions past their payout term, ready for a payout batch."""
        return await self.commission_repo.get_due_for_payout(affiliate_id, utcnow())
