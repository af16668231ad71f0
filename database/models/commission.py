"""Commission model - money owed to an affiliate for one paid invoice."""
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class CommissionStatus(str, Enum):
    """Commission status enum."""
    PENDING = "pending"  # Created, maturing until due_at
    APPROVED = "approved"  # Approved for payout
    PROCESSING = "processing"  # Included in a payout batch
    PAID = "paid"  # Transferred to the affiliate
    REVERSED = "reversed"  # Refunded sale (terminal)


# Statuses whose amount still sits in the pending bucket of the affiliate stats
UNPAID_STATUSES = (
    CommissionStatus.PENDING.value,
    CommissionStatus.APPROVED.value,
    CommissionStatus.PROCESSING.value,
)


class Commission(Base):
    """Commission earned on a single paid invoice."""

    __tablename__ = "commissions"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    referral_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("referrals.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Payment processor identifiers; invoice_id is the dedup key
    payment_customer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    invoice_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    charge_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_number: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="1-based payment sequence on the subscription"
    )

    # Amounts (cents) and the rate actually applied, kept for audit
    sale_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_rate: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    commission_type: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True,
        comment="pending/approved/processing/paid/reversed"
    )
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, comment="Payout eligibility date")
    payout_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_reversed(self) -> bool:
        return self.status == CommissionStatus.REVERSED.value

    def __repr__(self) -> str:
        return (
            f"<Commission(id={self.id}, affiliate={self.affiliate_id}, "
            f"amount={self.commission_amount_cents}, status='{self.status}')>"
        )
