"""Referral repository for database operations."""
from typing import Optional, List
from datetime import datetime
import secrets

from sqlalchemy import select, func, and_

from database.models import Referral, ReferralStatus
from database.models.referral import EXPIRABLE_STATUSES
from database.repositories.base import BaseRepository


def generate_referral_token() -> str:
    """Unguessable token handed to client code."""
    return secrets.token_urlsafe(24)


class ReferralRepository(BaseRepository[Referral]):
    """Repository for Referral model operations."""

    model_class = Referral

    async def create(
        self,
        affiliate_id: int,
        expires_at: datetime,
        status: ReferralStatus = ReferralStatus.CLICKED,
        landing_page: str = "/",
        sub_id: Optional[str] = None,
        user_id: Optional[str] = None,
        payment_customer_id: Optional[str] = None,
        clicked_at: Optional[datetime] = None,
        signed_up_at: Optional[datetime] = None,
        converted_at: Optional[datetime] = None,
    ) -> Referral:
        """Create new referral with a fresh token."""
        token = generate_referral_token()
        while await self.get_by_token(token):
            token = generate_referral_token()

        referral = Referral(
            referral_id=token,
            affiliate_id=affiliate_id,
            status=ReferralStatus(status).value,
            landing_page=landing_page or "/",
            sub_id=sub_id,
            user_id=user_id,
            payment_customer_id=payment_customer_id,
            expires_at=expires_at,
            signed_up_at=signed_up_at,
            converted_at=converted_at,
        )
        if clicked_at is not None:
            referral.clicked_at = clicked_at
        self.session.add(referral)
        await self.session.flush()
        return referral

    async def get_by_token(self, token: str) -> Optional[Referral]:
        """Get referral by its external token."""
        result = await self.session.execute(
            select(Referral).where(Referral.referral_id == token)
        )
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: str) -> Optional[Referral]:
        """Get the referral attributed to an external user."""
        result = await self.session.execute(
            select(Referral).where(Referral.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_payment_customer_id(self, customer_id: str) -> Optional[Referral]:
        """Get the earliest referral linked to a payment customer."""
        result = await self.session.execute(
            select(Referral)
            .where(Referral.payment_customer_id == customer_id)
            .order_by(Referral.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_all_by_affiliate(
        self,
        affiliate_id: int,
        status: Optional[ReferralStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Referral]:
        """Get referrals of an affiliate, newest first."""
        query = select(Referral).where(Referral.affiliate_id == affiliate_id)

        if status:
            query = query.where(Referral.status == status.value)

        query = query.order_by(Referral.clicked_at.desc(), Referral.id.desc())
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_stale(self, now: datetime, limit: int = 100) -> List[Referral]:
        """Referrals whose window has closed but are not yet expired or converted."""
        result = await self.session.execute(
            select(Referral)
            .where(
                and_(
                    Referral.status.in_(EXPIRABLE_STATUSES),
                    Referral.expires_at <= now,
                )
            )
            .order_by(Referral.expires_at, Referral.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def count_by_status(self, affiliate_id: int) -> dict[str, int]:
        """Count an affiliate's referrals per status."""
        result = await self.session.execute(
            select(
                Referral.status,
                func.count(Referral.id).label('count')
            ).where(
                Referral.affiliate_id == affiliate_id
            ).group_by(Referral.status)
        )

        stats = {status.value: 0 for status in ReferralStatus}
        for row in result:
            stats[row.status] = row.count
        return stats
