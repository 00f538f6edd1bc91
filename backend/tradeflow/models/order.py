"""Order database model."""

from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import String, Text, Integer, Numeric, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from tradeflow.database import Base


class OrderStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)


class Order(Base):
    """Settlement artifact produced by an accepted quote or negotiation."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    order_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)

    buyer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Settlement source (whichever path produced the order)
    product_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    rfq_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    quote_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)
    negotiation_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)

    # Amounts
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True
    )  # pending|confirmed|processing|shipped|delivered|cancelled
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, order_number={self.order_number}, total={self.total_amount})>"
