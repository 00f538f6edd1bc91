"""API routers package."""

from tradeflow.api import rfqs, quotes, negotiations, orders, ai, realtime, deps

__all__ = [
    "rfqs",
    "quotes",
    "negotiations",
    "orders",
    "ai",
    "realtime",
    "deps",
]
