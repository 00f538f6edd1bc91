"""Pydantic schemas package."""

from tradeflow.schemas.rfq import RFQCreate, RFQClose, RFQResponse
from tradeflow.schemas.quote import QuoteSubmit, QuoteResponse, QuoteAcceptResponse
from tradeflow.schemas.order import OrderResponse, OrderStatusUpdate
from tradeflow.schemas.negotiation import (
    NegotiationCreate,
    NegotiationMessageCreate,
    NegotiationMessageResponse,
    NegotiationResponse,
    NegotiationAcceptRequest,
    NegotiationAcceptResponse,
    AINegotiateRequest,
    AINegotiateResponse,
)
from tradeflow.schemas.ai import (
    AICounterOffer,
    MarketData,
    PriceRecommendation,
    PriceRecommendationRequest,
)

__all__ = [
    # RFQ schemas
    "RFQCreate",
    "RFQClose",
    "RFQResponse",
    # Quote schemas
    "QuoteSubmit",
    "QuoteResponse",
    "QuoteAcceptResponse",
    # Order schemas
    "OrderResponse",
    "OrderStatusUpdate",
    # Negotiation schemas
    "NegotiationCreate",
    "NegotiationMessageCreate",
    "NegotiationMessageResponse",
    "NegotiationResponse",
    "NegotiationAcceptRequest",
    "NegotiationAcceptResponse",
    "AINegotiateRequest",
    "AINegotiateResponse",
    # AI schemas
    "AICounterOffer",
    "MarketData",
    "PriceRecommendation",
    "PriceRecommendationRequest",
]
