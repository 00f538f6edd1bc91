"""
Negotiation schemas for buyer/vendor price negotiation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from tradeflow.schemas.ai import AICounterOffer
from tradeflow.schemas.order import OrderResponse


# Negotiation Message Schemas

class NegotiationMessageCreate(BaseModel):
    """Post a chat message and/or a counter-price."""
    message: str = Field("", max_length=5000)
    offer: Optional[Decimal] = Field(None, description="Counter-price per unit", gt=0, max_digits=12, decimal_places=2)


class NegotiationMessageResponse(BaseModel):
    """One entry of the negotiation transcript."""
    id: str
    negotiation_id: str
    sequence: int
    sender: str
    sender_id: str
    message: str
    offer: Optional[Decimal]
    ai_data: Optional[dict]
    created_at: datetime

    class Config:
        from_attributes = True


# Negotiation Schemas

class NegotiationCreate(BaseModel):
    """Request to start negotiating on a product."""
    product_id: str = Field(..., description="Product to negotiate for")
    quantity: Optional[int] = Field(None, gt=0, description="Defaults to the product's minimum order quantity")
    initial_offer: Optional[Decimal] = Field(None, description="Opening offer per unit", gt=0, max_digits=12, decimal_places=2)
    message: Optional[str] = Field(None, max_length=5000, description="Optional text sent with the opening offer")
    rfq_id: Optional[str] = Field(None, description="RFQ this negotiation follows up on")


class AINegotiateRequest(BaseModel):
    """Ask the AI negotiator for a counter-offer."""
    message: str = Field("", max_length=5000, description="Buyer's latest message")


class NegotiationAcceptRequest(BaseModel):
    """Optional closing note when accepting a deal."""
    message: Optional[str] = Field(None, max_length=5000)


class NegotiationResponse(BaseModel):
    """Negotiation with its full transcript."""
    id: str
    rfq_id: Optional[str]
    product_id: str
    buyer_id: str
    vendor_id: str
    quantity: int
    initial_price: Decimal
    current_price: Decimal
    final_price: Optional[Decimal]
    is_active: bool
    is_accepted: bool
    created_at: datetime
    updated_at: datetime
    messages: List[NegotiationMessageResponse] = []

    class Config:
        from_attributes = True


class NegotiationAcceptResponse(BaseModel):
    """Accepted negotiation and the order it produced."""
    negotiation: NegotiationResponse
    order: OrderResponse


class AINegotiateResponse(BaseModel):
    """Negotiation after the AI turn plus the structured AI output."""
    negotiation: NegotiationResponse
    ai_response: AICounterOffer
