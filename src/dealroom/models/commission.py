# src/dealroom/models/commission.py
"""Versioned platform commission rates."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from dealroom.db.session import Base
from dealroom.db.time import utcnow


class CommissionSetting(Base):
    """Commission percentage effective from a point in time.

    Updating the rate deactivates the previous row and inserts a new one, so
    the table doubles as the change history.
    """

    __tablename__ = "commission_setting"
    __table_args__ = (
        CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_commission_percentage_range",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
