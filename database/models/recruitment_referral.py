"""Recruitment referral model - affiliate-recruits-affiliate funnel."""
from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from core.time_utils import utcnow
from database.base import Base, BigIntId


class RecruitmentReferralStatus(str, Enum):
    """Recruitment referral status enum."""
    CLICKED = "clicked"
    SIGNED_UP = "signed_up"  # Recruit registered as an affiliate
    APPROVED = "approved"  # Recruit approved


class RecruitmentReferral(Base):
    """Recruitment referral model."""

    __tablename__ = "recruitment_referrals"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    recruiting_affiliate_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    referral_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    landing_page: Mapped[str] = mapped_column(String(1024), nullable=False, default="/affiliates")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RecruitmentReferralStatus.CLICKED.value,
        comment="clicked/signed_up/approved"
    )
    recruited_affiliate_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Timestamps
    clicked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    signed_up_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<RecruitmentReferral(id={self.id}, recruiter={self.recruiting_affiliate_id}, "
            f"status='{self.status}')>"
        )
