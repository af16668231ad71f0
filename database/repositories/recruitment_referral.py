"""Recruitment referral repository."""
from typing import Optional
from datetime import datetime

from sqlalchemy import select

from database.models import RecruitmentReferral, RecruitmentReferralStatus
from database.repositories.base import BaseRepository
from database.repositories.referral import generate_referral_token


class RecruitmentReferralRepository(BaseRepository[RecruitmentReferral]):
    """Repository for RecruitmentReferral model operations."""

    model_class = RecruitmentReferral

    async def create(
        self,
        recruiting_affiliate_id: int,
        expires_at: datetime,
        landing_page: str = "/affiliates",
    ) -> RecruitmentReferral:
        """Create a clicked recruitment referral with a fresh token."""
        token = generate_referral_token()
        while await self.get_by_token(token):
            token = generate_referral_token()

        referral = RecruitmentReferral(
            recruiting_affiliate_id=recruiting_affiliate_id,
            referral_id=token,
            landing_page=landing_page or "/affiliates",
            status=RecruitmentReferralStatus.CLICKED.value,
            expires_at=expires_at,
        )
        self.session.add(referral)
        await self.session.flush()
        return referral

    async def get_by_token(self, token: str) -> Optional[RecruitmentReferral]:
        """Get recruitment referral by token."""
        result = await self.session.execute(
            select(RecruitmentReferral).where(RecruitmentReferral.referral_id == token)
        )
        return result.scalar_one_or_none()

    async def get_by_recruited_affiliate(self, affiliate_id: int) -> Optional[RecruitmentReferral]:
        """Get the recruitment referral consumed by a recruit's registration."""
        result = await self.session.execute(
            select(RecruitmentReferral)
            .where(RecruitmentReferral.recruited_affiliate_id == affiliate_id)
            .limit(1)
        )
        return result.scalar_one_or_none()
