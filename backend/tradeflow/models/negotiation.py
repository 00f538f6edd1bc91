"""
Negotiation models for bilateral price negotiation between buyer and vendor.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import String, Text, Integer, Boolean, ForeignKey, TIMESTAMP, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeflow.database import Base


class SenderRole:
    BUYER = "buyer"
    VENDOR = "vendor"
    AI = "ai"


AI_SENDER_ID = "ai-assistant"


class Negotiation(Base):
    """Price discussion for one (buyer, vendor, product) triple."""

    __tablename__ = "negotiations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Participants
    rfq_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("rfqs.id", ondelete="SET NULL"), nullable=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), index=True)
    buyer_id: Mapped[str] = mapped_column(String(36), index=True)
    vendor_id: Mapped[str] = mapped_column(String(36), index=True)

    quantity: Mapped[int] = mapped_column(Integer)

    # Pricing
    initial_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    current_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    # Set from current_price when the deal is accepted
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # State: active -> closed (optionally accepted)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_accepted: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    messages: Mapped[List["NegotiationMessage"]] = relationship(
        "NegotiationMessage",
        back_populates="negotiation",
        order_by="NegotiationMessage.sequence"
    )
    product: Mapped["Product"] = relationship("Product")

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.vendor_id)

    def role_of(self, user_id: str) -> str | None:
        if user_id == self.buyer_id:
            return SenderRole.BUYER
        if user_id == self.vendor_id:
            return SenderRole.VENDOR
        return None


class NegotiationMessage(Base):
    """Append-only chat entry; ``sequence`` is the authoritative order."""

    __tablename__ = "negotiation_messages"
    __table_args__ = (
        UniqueConstraint("negotiation_id", "sequence", name="uq_negotiation_messages_sequence"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    negotiation_id: Mapped[str] = mapped_column(String(36), ForeignKey("negotiations.id", ondelete="CASCADE"), index=True)
    sequence: Mapped[int] = mapped_column(Integer)

    sender: Mapped[str] = mapped_column(String(10))  # "buyer" | "vendor" | "ai"
    sender_id: Mapped[str] = mapped_column(String(36))

    message: Mapped[str] = mapped_column(Text, default="")
    offer: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    ai_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # {"reasoning", "recommendation", "market_justification"} when sender == "ai"

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, default=datetime.utcnow)

    # Relationships
    negotiation: Mapped["Negotiation"] = relationship("Negotiation", back_populates="messages")
