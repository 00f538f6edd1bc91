"""Structured AI adapter results."""

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Recommendation = Literal["suggest", "accept", "counter"]


class AICounterOffer(BaseModel):
    """Counter-offer produced by the AI negotiator."""
    response: str
    counter_offer: Optional[Decimal] = None
    reasoning: str = ""
    acceptance_recommendation: Recommendation = "counter"
    market_justification: str = ""


class MarketData(BaseModel):
    """Optional market context for price recommendations."""
    avg_price: Optional[Decimal] = None
    demand_trend: Optional[str] = Field(None, description="e.g. rising, stable, falling")
    competitors: List[dict] = []


class PriceRecommendationRequest(BaseModel):
    """Request a price recommendation for one of your products."""
    product_id: str
    market_data: Optional[MarketData] = None


class PriceRecommendation(BaseModel):
    """AI pricing recommendation."""
    recommended_price: Decimal
    price_change: Decimal
    price_change_percent: Decimal
    reasoning: str
    confidence: float = Field(..., ge=0, le=1)
    market_analysis: str
