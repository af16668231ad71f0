"""Affiliate repository for database operations."""
from typing import Optional
import secrets
import string

from sqlalchemy import select

from database.models import Affiliate, AffiliateStatus
from database.repositories.base import BaseRepository


class AffiliateRepository(BaseRepository[Affiliate]):
    """Repository for Affiliate model operations."""

    model_class = Affiliate

    async def get_by_code(self, code: str, for_update: bool = False) -> Optional[Affiliate]:
        """Get affiliate by tracking code (case-insensitive)."""
        query = select(Affiliate).where(Affiliate.code == code.strip().upper())
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_recruitment_code(self, code: str, for_update: bool = False) -> Optional[Affiliate]:
        """Get affiliate by recruitment code (case-insensitive)."""
        query = select(Affiliate).where(Affiliate.recruitment_code == code.strip().upper())
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: str) -> Optional[Affiliate]:
        """Get affiliate by external user id."""
        result = await self.session.execute(
            select(Affiliate).where(Affiliate.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_by_parent(self, parent_id: int) -> list[Affiliate]:
        """Get affiliates recruited by the given parent (back-reference lookup)."""
        result = await self.session.execute(
            select(Affiliate)
            .where(Affiliate.referred_by_affiliate_id == parent_id)
            .order_by(Affiliate.created_at.desc(), Affiliate.id.desc())
        )
        return list(result.scalars().all())

    async def code_exists(self, code: str) -> bool:
        """Check whether a code is taken as either tracking or recruitment code."""
        code = code.upper()
        result = await self.session.execute(
            select(Affiliate.id).where(
                (Affiliate.code == code) | (Affiliate.recruitment_code == code)
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        user_id: str,
        campaign_id: int,
        code: str,
        recruitment_code: Optional[str] = None,
        display_name: Optional[str] = None,
        payout_email: Optional[str] = None,
        referred_by_affiliate_id: Optional[int] = None,
    ) -> Affiliate:
        """Create new affiliate in pending status."""
        affiliate = Affiliate(
            user_id=user_id,
            campaign_id=campaign_id,
            code=code.upper(),
            recruitment_code=recruitment_code.upper() if recruitment_code else None,
            display_name=display_name,
            payout_email=payout_email,
            referred_by_affiliate_id=referred_by_affiliate_id,
            status=AffiliateStatus.PENDING.value,
        )
        self.session.add(affiliate)
        await self.session.flush()
        return affiliate

    async def generate_unique_code(self, length: int = 8) -> str:
        """Generate random code not used by any affiliate."""
        code = self._generate_code(length)
        while await self.code_exists(code):
            code = self._generate_code(length)
        return code

    @staticmethod
    def _generate_code(length: int = 8) -> str:
        """Generate random affiliate code."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))
