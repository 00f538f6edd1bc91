"""Request-for-quote database model."""

from datetime import datetime
from decimal import Decimal
from typing import List
import uuid

from sqlalchemy import String, Text, Integer, Numeric, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeflow.database import Base


class RFQStatus:
    OPEN = "open"
    QUOTED = "quoted"  # Kept for storage compatibility; no transition produces it
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CLOSED = "closed"

    ALL = (OPEN, QUOTED, ACCEPTED, REJECTED, CLOSED)
    MANUAL_TERMINAL = (CLOSED, REJECTED)


class RFQ(Base):
    """A buyer's request for quotes."""

    __tablename__ = "rfqs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    buyer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    target_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RFQStatus.OPEN,
        index=True
    )  # open|quoted|accepted|rejected|closed

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    quotes: Mapped[List["Quote"]] = relationship(
        "Quote",
        back_populates="rfq",
        order_by="Quote.created_at"
    )

    def __repr__(self) -> str:
        return f"<RFQ(id={self.id}, status={self.status})>"
