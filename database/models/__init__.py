"""Database models package."""
from database.models.campaign import Campaign, CommissionType, CommissionDuration, PayoutTerm
from database.models.affiliate import Affiliate, AffiliateStatus
from database.models.referral import Referral, ReferralStatus
from database.models.commission import Commission, CommissionStatus
from database.models.sub_affiliate_commission import SubAffiliateCommission
from database.models.recruitment_referral import RecruitmentReferral, RecruitmentReferralStatus
from database.models.event import AffiliateEvent, EventType

__all__ = [
    "Campaign",
    "CommissionType",
    "CommissionDuration",
    "PayoutTerm",
    "Affiliate",
    "AffiliateStatus",
    "Referral",
    "ReferralStatus",
    "Commission",
    "CommissionStatus",
    "SubAffiliateCommission",
    "RecruitmentReferral",
    "RecruitmentReferralStatus",
    "AffiliateEvent",
    "EventType",
]
