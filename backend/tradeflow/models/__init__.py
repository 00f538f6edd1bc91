"""Database models package."""

from tradeflow.models.product import Product
from tradeflow.models.rfq import RFQ, RFQStatus
from tradeflow.models.quote import Quote, QuoteStatus
from tradeflow.models.negotiation import Negotiation, NegotiationMessage, SenderRole, AI_SENDER_ID
from tradeflow.models.order import Order, OrderStatus

__all__ = [
    "Product",
    "RFQ",
    "RFQStatus",
    "Quote",
    "QuoteStatus",
    "Negotiation",
    "NegotiationMessage",
    "SenderRole",
    "AI_SENDER_ID",
    "Order",
    "OrderStatus",
]
