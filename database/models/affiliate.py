"""Affiliate model - a partner earning commission on referred sales."""
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class AffiliateStatus(str, Enum):
    """Affiliate status enum."""
    PENDING = "pending"  # Registered, waiting for review
    APPROVED = "approved"  # Can earn commission
    SUSPENDED = "suspended"  # Temporarily blocked, can be reactivated
    REJECTED = "rejected"  # Application declined (terminal)


# Allowed status transitions: pending -> {approved, rejected}, approved <-> suspended
AFFILIATE_TRANSITIONS: dict[AffiliateStatus, frozenset[AffiliateStatus]] = {
    AffiliateStatus.PENDING: frozenset({AffiliateStatus.APPROVED, AffiliateStatus.REJECTED}),
    AffiliateStatus.APPROVED: frozenset({AffiliateStatus.SUSPENDED}),
    AffiliateStatus.SUSPENDED: frozenset({AffiliateStatus.APPROVED}),
    AffiliateStatus.REJECTED: frozenset(),
}


class Affiliate(Base):
    """Affiliate model with denormalized performance counters."""

    __tablename__ = "affiliates"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    # External identity (opaque user id from the auth collaborator), immutable
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("campaigns.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Tracking codes (stored upper-case)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    recruitment_code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True, index=True)

    # Profile
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payout_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Per-affiliate commission override
    custom_commission_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    custom_commission_value: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AffiliateStatus.PENDING.value,
        index=True,
        comment="pending/approved/suspended/rejected"
    )

    # Denormalized stats
    total_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_signups: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_conversions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    pending_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    paid_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Recruitment back-reference (lookup only, never an owning relationship)
    referred_by_affiliate_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Affiliate who recruited this one"
    )

    # Sub-affiliate stats (as a recruiter)
    total_recruits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active_recruits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sub_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    pending_sub_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    paid_sub_commissions_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_approved(self) -> bool:
        return self.status == AffiliateStatus.APPROVED.value

    @property
    def has_custom_commission(self) -> bool:
        return self.custom_commission_type is not None and self.custom_commission_value is not None

    def can_transition_to(self, target: AffiliateStatus) -> bool:
        return target in AFFILIATE_TRANSITIONS[AffiliateStatus(self.status)]

    def __repr__(self) -> str:
        return f"<Affiliate(id={self.id}, code='{self.code}', status='{self.status}')>"
