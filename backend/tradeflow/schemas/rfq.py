"""RFQ request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RFQCreate(BaseModel):
    """Request to open a new RFQ."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    product_id: Optional[str] = Field(None, description="Catalog product the RFQ refers to")
    quantity: int = Field(..., gt=0)
    target_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    deadline: Optional[datetime] = Field(None, description="Last moment vendors may quote")


class RFQClose(BaseModel):
    """Manually end an open RFQ."""
    status: Literal["closed", "rejected"] = "closed"


class RFQResponse(BaseModel):
    """RFQ details."""
    id: str
    buyer_id: str
    product_id: Optional[str]
    title: str
    description: Optional[str]
    quantity: int
    target_price: Optional[Decimal]
    deadline: Optional[datetime]
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
