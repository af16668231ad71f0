"""Campaign repository for database operations."""
from typing import Optional

from sqlalchemy import select, update

from api.config import settings
from core.exceptions import (
    CampaignNotFoundError,
    DefaultCampaignArchiveError,
    DuplicateCampaignSlugError,
)
from database.models import Campaign, CommissionType, CommissionDuration, PayoutTerm
from database.repositories.base import BaseRepository


class CampaignRepository(BaseRepository[Campaign]):
    """
    Repository for Campaign model operations.

    Campaigns are owned by the admin side; the engine only reads them. The
    write methods here keep the single-default invariant.
    """

    model_class = Campaign

    async def get_by_slug(self, slug: str) -> Optional[Campaign]:
        """Get campaign by slug."""
        result = await self.session.execute(
            select(Campaign).where(Campaign.slug == slug)
        )
        return result.scalar_one_or_none()

    async def get_default(self) -> Optional[Campaign]:
        """Get the default campaign, if any."""
        result = await self.session.execute(
            select(Campaign).where(Campaign.is_default.is_(True)).limit(1)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        name: str,
        slug: str,
        commission_value: float,
        commission_type: CommissionType = CommissionType.PERCENTAGE,
        commission_duration: CommissionDuration = CommissionDuration.LIFETIME,
        commission_duration_value: Optional[int] = None,
        cookie_duration_days: Optional[int] = None,
        payout_term: PayoutTerm = PayoutTerm.NET_30,
        is_default: bool = False,
        **extra,
    ) -> Campaign:
        """
        Create new campaign.

        Extra keyword arguments are passed to the model (product lists,
        referee discount, recruitment policy).
        """
        if await self.get_by_slug(slug):
            raise DuplicateCampaignSlugError(slug)

        if is_default:
            await self._clear_default()

        campaign = Campaign(
            name=name,
            slug=slug,
            commission_type=CommissionType(commission_type).value,
            commission_value=commission_value,
            commission_duration=CommissionDuration(commission_duration).value,
            commission_duration_value=commission_duration_value,
            cookie_duration_days=cookie_duration_days or settings.default_cookie_duration_days,
            payout_term=PayoutTerm(payout_term).value,
            is_default=is_default,
            is_active=True,
            **extra,
        )
        self.session.add(campaign)
        await self.session.flush()
        return campaign

    async def set_default(self, campaign_id: int) -> Campaign:
        """Make a campaign the default, clearing the previous one."""
        campaign = await self.get_by_id(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)

        await self._clear_default()
        campaign.is_default = True
        campaign.is_active = True
        await self.session.flush()
        return campaign

    async def archive(self, campaign_id: int) -> Campaign:
        """Deactivate a campaign. The default campaign cannot be archived."""
        campaign = await self.get_by_id(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        if campaign.is_default:
            raise DefaultCampaignArchiveError()

        campaign.is_active = False
        await self.session.flush()
        return campaign

    async def _clear_default(self) -> None:
        await self.session.execute(
            update(Campaign)
            .where(Campaign.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
