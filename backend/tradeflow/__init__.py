"""Tradeflow: quote and negotiation settlement engine for a B2B marketplace."""

__version__ = "1.0.0"
