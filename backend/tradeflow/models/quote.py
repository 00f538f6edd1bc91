"""Vendor quote database model."""

from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import String, Text, Integer, Numeric, Boolean, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeflow.database import Base


class QuoteStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Quote(Base):
    """A vendor's priced response to an RFQ. One per (rfq, vendor)."""

    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("rfq_id", "vendor_id", name="uq_quotes_rfq_vendor"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    rfq_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Terms
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    delivery_time: Mapped[str | None] = mapped_column(String(100), nullable=True)
    valid_until: Mapped[datetime | None] = mapped_column(TIMESTAMP, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Settlement
    is_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=QuoteStatus.PENDING
    )  # pending|accepted|rejected

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

    rfq: Mapped["RFQ"] = relationship("RFQ", back_populates="quotes")

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, rfq_id={self.rfq_id}, price={self.price}, status={self.status})>"
