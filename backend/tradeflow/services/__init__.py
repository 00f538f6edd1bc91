"""Business logic services package."""

from tradeflow.services.quote_service import (
    create_rfq,
    get_rfq,
    list_rfqs,
    close_rfq,
    submit_quote,
    list_quotes,
    accept_quote,
    QuoteAcceptance,
)
from tradeflow.services.order_service import (
    build_order,
    list_orders,
    get_order,
    update_order_status,
)
from tradeflow.services.ai_negotiator import AINegotiationService, ai_negotiation_service
from tradeflow.services.negotiation_service import NegotiationSessionService, negotiation_service

__all__ = [
    # Quote service
    "create_rfq",
    "get_rfq",
    "list_rfqs",
    "close_rfq",
    "submit_quote",
    "list_quotes",
    "accept_quote",
    "QuoteAcceptance",
    # Order service
    "build_order",
    "list_orders",
    "get_order",
    "update_order_status",
    # AI negotiator
    "AINegotiationService",
    "ai_negotiation_service",
    # Negotiation service
    "NegotiationSessionService",
    "negotiation_service",
]
