"""
Result objects returned by engine operations.

Expected declines (bad codes, self-referral, duplicate deliveries, caps) are
reported through these values rather than exceptions.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DeclineReason(str, Enum):
    """Why an operation declined to mutate anything."""
    INVALID_AFFILIATE_CODE = "invalid_affiliate_code"
    AFFILIATE_NOT_APPROVED = "affiliate_not_approved"
    CAMPAIGN_INACTIVE = "campaign_inactive"
    CAMPAIGN_NOT_FOUND = "campaign_not_found"
    REFERRAL_NOT_FOUND = "referral_not_found"
    REFERRAL_EXPIRED = "referral_expired"
    REFERRAL_NOT_CLICKED = "referral_not_clicked"
    SELF_REFERRAL = "self_referral"
    NON_POSITIVE_AMOUNT = "non_positive_amount"
    NO_ATTRIBUTION = "no_attribution"
    MAX_PAYMENTS_REACHED = "max_payments_reached"
    MAX_MONTHS_REACHED = "max_months_reached"
    PRODUCT_EXCLUDED = "product_excluded"
    PRODUCT_NOT_ALLOWED = "product_not_allowed"
    INVALID_RECRUITMENT_CODE = "invalid_recruitment_code"
    RECRUITMENT_NOT_ENABLED = "recruitment_not_enabled"
    MAX_SUB_AFFILIATES_REACHED = "max_sub_affiliates_reached"
    NOT_A_SUB_AFFILIATE = "not_a_sub_affiliate"
    PARENT_AFFILIATE_NOT_FOUND = "parent_affiliate_not_found"
    SUB_COMMISSION_NOT_ENABLED = "sub_affiliate_commission_not_enabled"
    COMMISSION_TOO_SMALL = "commission_too_small"


@dataclass
class AttributionResult:
    """Outcome of a signup attribution attempt."""
    success: bool
    reason: Optional[DeclineReason] = None
    referral_id: Optional[int] = None
    referral_token: Optional[str] = None
    affiliate_id: Optional[int] = None
    already_attributed: bool = False

    @classmethod
    def declined(cls, reason: DeclineReason) -> "AttributionResult":
        return cls(success=False, reason=reason)


@dataclass
class CommissionResult:
    """Outcome of processing a paid invoice."""
    created: bool = False
    duplicate: bool = False
    reason: Optional[DeclineReason] = None
    commission_id: Optional[int] = None
    affiliate_id: Optional[int] = None
    affiliate_code: Optional[str] = None
    commission_amount_cents: Optional[int] = None
    currency: Optional[str] = None

    @property
    def has_commission(self) -> bool:
        """True when a commission exists for the invoice (new or duplicate)."""
        return self.commission_id is not None

    @classmethod
    def declined(cls, reason: DeclineReason) -> "CommissionResult":
        return cls(reason=reason)


@dataclass
class CommissionReversal:
    """Details of a commission reversed after a refund."""
    commission_id: int
    affiliate_id: int
    commission_amount_cents: int
    previous_status: str
    reason: str


@dataclass
class SubCommissionResult:
    """Outcome of the sub-affiliate cascade for one source commission."""
    success: bool
    sub_commission_id: Optional[int] = None
    sub_commission_amount_cents: Optional[int] = None
    reason: Optional[DeclineReason] = None


@dataclass
class RecruitmentClickResult:
    """Outcome of a recruitment link click."""
    success: bool
    referral_token: Optional[str] = None
    error: Optional[DeclineReason] = None


@dataclass
class RefereeDiscount:
    """Two-sided reward: the discount a referred customer receives."""
    discount_type: str
    discount_value: int
    coupon_id: Optional[str]
    affiliate_code: str
    affiliate_display_name: Optional[str] = None


@dataclass
class ConversionFunnel:
    """Funnel counters for one affiliate."""
    clicks: int
    signups: int
    conversions: int
    click_to_signup_rate: float
    signup_to_conversion_rate: float
