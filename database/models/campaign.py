"""Campaign model - commission rules consumed by the engine."""
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Integer, JSON, Numeric, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class CommissionType(str, Enum):
    """How a commission (or referee discount) value is interpreted."""
    PERCENTAGE = "percentage"  # value is a percent of the sale (0-100)
    FIXED = "fixed"  # value is a flat amount in cents


class CommissionDuration(str, Enum):
    """How long a subscription keeps earning commission."""
    LIFETIME = "lifetime"
    MAX_PAYMENTS = "max_payments"
    MAX_MONTHS = "max_months"


class PayoutTerm(str, Enum):
    """Delay between a commission being earned and becoming payable."""
    NET_0 = "NET-0"
    NET_15 = "NET-15"
    NET_30 = "NET-30"
    NET_60 = "NET-60"
    NET_90 = "NET-90"

    @property
    def days(self) -> int:
        return int(self.value.split("-")[1])


class Campaign(Base):
    """Affiliate campaign rules."""

    __tablename__ = "campaigns"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    # Commission structure
    commission_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionType.PERCENTAGE.value,
        comment="percentage/fixed"
    )
    commission_value: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
        comment="Percent (0-100) for percentage, cents for fixed"
    )

    # Duration settings
    commission_duration: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionDuration.LIFETIME.value,
        comment="lifetime/max_payments/max_months"
    )
    commission_duration_value: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Payment or month cap for limited durations"
    )

    # Tracking
    cookie_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    # Payout settings
    min_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=5000)
    payout_term: Mapped[str] = mapped_column(String(10), nullable=False, default=PayoutTerm.NET_30.value)

    # Product restrictions (processor product IDs); exclusions win
    allowed_products: Mapped[list | None] = mapped_column(JSON, nullable=True)
    excluded_products: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # Two-sided rewards: discount for referred customers
    referee_discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    referee_discount_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    referee_coupon_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Recruitment policy
    affiliate_recruitment_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sub_affiliate_commission_percent: Mapped[float | None] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=True,
        comment="Share of a recruit's commission paid to the recruiter"
    )
    max_sub_affiliates_per_affiliate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recruitment_cookie_duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def has_referee_discount(self) -> bool:
        return self.referee_discount_type is not None and self.referee_discount_value is not None

    @property
    def has_recruitment_commission(self) -> bool:
        return bool(self.affiliate_recruitment_enabled and self.sub_affiliate_commission_percent)

    @property
    def recruitment_cookie_days(self) -> int:
        return self.recruitment_cookie_duration_days or self.cookie_duration_days or 30

    def __repr__(self) -> str:
        return f"<Campaign(id={self.id}, slug='{self.slug}', active={self.is_active})>"
