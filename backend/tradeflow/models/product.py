"""Product database model (read-only for the settlement engine)."""

from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import String, Text, Integer, Numeric, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from tradeflow.database import Base


class Product(Base):
    """Catalog product listed by a vendor."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Pricing & stock
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Engagement
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=Decimal("0.00"))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP,
        nullable=False,
        default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, price={self.price})>"
