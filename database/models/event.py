"""Affiliate analytics event log."""
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class EventType(str, Enum):
    """Analytics event types."""
    CLICK = "click"
    SIGNUP = "signup"
    CONVERSION = "conversion"
    REFUND = "refund"
    PAYOUT = "payout"


class AffiliateEvent(Base):
    """Append-only analytics event."""

    __tablename__ = "affiliate_events"
    __table_args__ = (
        Index("ix_affiliate_events_affiliate_timestamp", "affiliate_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<AffiliateEvent(id={self.id}, affiliate={self.affiliate_id}, type='{self.type}')>"
