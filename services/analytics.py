"""Analytics service: affiliate event log and funnel metrics."""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.dto import ConversionFunnel
from core.exceptions import AffiliateNotFoundError
from database.models import AffiliateEvent, EventType
from database.repositories import AffiliateEventRepository, AffiliateRepository

logger = logging.getLogger(__name__)


def _rate(numerator: int, denominator: int) -> float:
    """Percentage rounded to one decimal, 0.0 when nothing to divide by."""
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 1)


class AnalyticsService:
    """Service for affiliate analytics events and funnel metrics."""

    def __init__(self, session: AsyncSession):
        """Initialize analytics service with database session."""
        self.session = session
        self.event_repo = AffiliateEventRepository(session)
        self.affiliate_repo = AffiliateRepository(session)

    async def record_event(
        self,
        affiliate_id: int,
        event_type: EventType,
        metadata: Optional[dict] = None,
    ) -> AffiliateEvent:
        """
        Append an analytics event for an affiliate.

        Events are written in the caller's transaction, so a rolled back
        operation leaves no event behind.

        Args:
            affiliate_id: Affiliate the event belongs to
            event_type: click/signup/conversion/refund/payout
            metadata: Free-form JSON payload

        Returns:
            Created event
        """
        event = await self.event_repo.create(affiliate_id, event_type, metadata)
        logger.debug(
            f"Recorded {EventType(event_type).value} event for affiliate {affiliate_id}",
            extra={"affiliate_id": affiliate_id, "event_type": EventType(event_type).value},
        )
        return event

    async def get_recent_events(
        self,
        affiliate_id: int,
        event_type: Optional[EventType] = None,
        limit: int = 50,
    ) -> List[AffiliateEvent]:
        """Latest events of an affiliate, newest first."""
        return await self.event_repo.get_recent(affiliate_id, event_type, limit)

    async def get_conversion_funnel(self, affiliate_id: int) -> ConversionFunnel:
        """
        Summarise an affiliate's funnel from its denormalized counters.

        Raises:
            AffiliateNotFoundError: Unknown affiliate id
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if not affiliate:
            raise AffiliateNotFoundError(affiliate_id)

        return ConversionFunnel(
            clicks=affiliate.total_clicks,
            signups=affiliate.total_signups,
            conversions=affiliate.total_conversions,
            click_to_signup_rate=_rate(affiliate.total_signups, affiliate.total_clicks),
            signup_to_conversion_rate=_rate(affiliate.total_conversions, affiliate.total_signups),
        )
