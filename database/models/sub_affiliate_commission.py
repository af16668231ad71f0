"""Derived commission paid to a recruiting (parent) affiliate."""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId
from database.models.commission import CommissionStatus


class SubAffiliateCommission(Base):
    """
    Sub-affiliate commission model.

    Exactly one row per source commission; its status mirrors the source
    and is never reversed independently.
    """

    __tablename__ = "sub_affiliate_commissions"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    parent_affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Recruiting affiliate receiving the derived commission"
    )
    sub_affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    source_commission_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("commissions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    # Amounts
    source_commission_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sub_commission_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sub_commission_percent: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True
    )
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SubAffiliateCommission(id={self.id}, parent={self.parent_affiliate_id}, "
            f"source={self.source_commission_id}, status='{self.status}')>"
        )
