"""Vendor quote request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tradeflow.schemas.order import OrderResponse


class QuoteSubmit(BaseModel):
    """Vendor's price terms for an RFQ. Resubmitting updates the existing quote."""
    price: Decimal = Field(..., description="Unit price", gt=0, max_digits=12, decimal_places=2)
    quantity: int = Field(..., gt=0)
    delivery_time: Optional[str] = Field(None, max_length=100, description="e.g. '2 weeks'")
    valid_until: Optional[datetime] = Field(None, description="Quote expiry")
    notes: Optional[str] = Field(None, max_length=2000)


class QuoteResponse(BaseModel):
    """Quote details."""
    id: str
    rfq_id: str
    vendor_id: str
    product_id: Optional[str]
    price: Decimal
    quantity: int
    delivery_time: Optional[str]
    valid_until: Optional[datetime]
    notes: Optional[str]
    is_accepted: bool
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuoteAcceptResponse(BaseModel):
    """Result of settling an RFQ on one quote."""
    quote: QuoteResponse
    rejected_quotes: List[QuoteResponse] = []
    order: Optional[OrderResponse]
