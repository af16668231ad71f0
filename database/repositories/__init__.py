"""Database repositories package."""
from database.repositories.campaign import CampaignRepository
from database.repositories.affiliate import AffiliateRepository
from database.repositories.referral import ReferralRepository
from database.repositories.commission import CommissionRepository
from database.repositories.sub_affiliate_commission import SubAffiliateCommissionRepository
from database.repositories.recruitment_referral import RecruitmentReferralRepository
from database.repositories.event import AffiliateEventRepository

__all__ = [
    "CampaignRepository",
    "AffiliateRepository",
    "ReferralRepository",
    "CommissionRepository",
    "SubAffiliateCommissionRepository",
    "RecruitmentReferralRepository",
    "AffiliateEventRepository",
]
