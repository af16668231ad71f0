"""Affiliate event repository."""
from typing import Optional, List

from sqlalchemy import select

from database.models import AffiliateEvent, EventType
from database.repositories.base import BaseRepository


class AffiliateEventRepository(BaseRepository[AffiliateEvent]):
    """Repository for AffiliateEvent model operations."""

    model_class = AffiliateEvent

    async def create(
        self,
        affiliate_id: int,
        event_type: EventType,
        metadata: Optional[dict] = None,
    ) -> AffiliateEvent:
        """Append an analytics event."""
        event = AffiliateEvent(
            affiliate_id=affiliate_id,
            type=EventType(event_type).value,
            event_metadata=metadata or {},
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_recent(
        self,
        affiliate_id: int,
        event_type: Optional[EventType] = None,
        limit: int = 50,
    ) -> List[AffiliateEvent]:
        """Get latest events of an affiliate, newest first."""
        query = select(AffiliateEvent).where(AffiliateEvent.affiliate_id == affiliate_id)
        if event_type:
            query = query.where(AffiliateEvent.type == EventType(event_type).value)
        query = query.order_by(AffiliateEvent.timestamp.desc(), AffiliateEvent.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())
