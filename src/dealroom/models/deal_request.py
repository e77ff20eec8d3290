# src/dealroom/models/deal_request.py
"""Read-side view of the request records owned by campaign/bid CRUD."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from dealroom.db.session import Base
from dealroom.db.time import utcnow


class DealRequest(Base):
    """An influencer's request on a campaign or bid.

    Its ``final_agreed_amount`` takes precedence over the conversation's own
    ``flow_data.agreed_amount`` when resolving payment breakdowns.
    """

    __tablename__ = "deal_request"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    influencer_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    campaign_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    bid_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    final_agreed_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
