"""Referral model for tracking the click -> signup -> conversion funnel."""
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, String, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class ReferralStatus(str, Enum):
    """Referral status enum."""
    CLICKED = "clicked"  # Visitor arrived through an affiliate link
    SIGNED_UP = "signed_up"  # Visitor registered, user id attributed
    CONVERTED = "converted"  # First commission earned (terminal)
    EXPIRED = "expired"  # Attribution window closed before conversion


# Statuses the expiry sweep may still move to expired
EXPIRABLE_STATUSES = (ReferralStatus.CLICKED.value, ReferralStatus.SIGNED_UP.value)


class Referral(Base):
    """Referral tracking model."""

    __tablename__ = "referrals"
    __table_args__ = (
        Index("ix_referrals_expires_at_status", "expires_at", "status"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    # Opaque token persisted by client code (distinct from the internal id)
    referral_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Affiliate credited for this referral"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReferralStatus.CLICKED.value,
        index=True,
        comment="clicked/signed_up/converted/expired"
    )

    # Attribution (first attribution wins, so user_id is unique)
    user_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    payment_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Tracking
    landing_page: Mapped[str] = mapped_column(String(1024), nullable=False, default="/")
    sub_id: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Affiliate sub-tracking id")

    # Timestamps
    clicked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    signed_up_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    converted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, comment="Fixed at creation")

    def is_expired(self, now: datetime) -> bool:
        """The expiry instant itself is outside the attribution window."""
        if self.status == ReferralStatus.EXPIRED.value:
            return True
        return now >= self.expires_at

    def __repr__(self) -> str:
        return f"<Referral(id={self.id}, affiliate={self.affiliate_id}, status='{self.status}')>"
