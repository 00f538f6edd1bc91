"""Order schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class OrderResponse(BaseModel):
    """Order details. Amounts serialize as decimal strings."""
    id: str
    order_number: str
    buyer_id: str
    vendor_id: str
    product_id: Optional[str]
    rfq_id: Optional[str]
    quote_id: Optional[str]
    negotiation_id: Optional[str]
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    status: str
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    """Vendor-driven order status change."""
    status: Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"] = Field(
        ..., description="Target status"
    )
