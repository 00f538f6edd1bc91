"""LLM-backed negotiation assistant and price recommendations using Claude API."""

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

import anthropic

from tradeflow.config import settings
from tradeflow.core.ai_parsing import extract_json_object, normalize_amount, normalize_number, normalize_price
from tradeflow.core.exceptions import AIQuotaExceededError, AIServiceError
from tradeflow.models.product import Product
from tradeflow.schemas.ai import AICounterOffer, MarketData, PriceRecommendation

logger = logging.getLogger(__name__)

RECOMMENDATIONS = ("suggest", "accept", "counter")

# Provider messages that mean retrying cannot help
QUOTA_MARKERS = ("quota", "credit balance", "billing", "free_tier", "free tier", "insufficient_quota")

FALLBACK_RESPONSE = "Sorry, AI could not generate a proper negotiation response. Please try again."


@dataclass
class NegotiationContext:
    """Snapshot of a negotiation handed to the AI negotiator."""
    product_name: str
    listed_price: Decimal
    min_order_quantity: int
    current_offer: Decimal
    buyer_message: str = ""
    history: List[Dict[str, Any]] = field(default_factory=list)


def fallback_counter_offer() -> AICounterOffer:
    return AICounterOffer(
        response=FALLBACK_RESPONSE,
        counter_offer=None,
        reasoning="",
        acceptance_recommendation="counter",
        market_justification="",
    )


def _field(parsed: dict, *names: str) -> Any:
    """First present key; models answer in snake_case or camelCase."""
    for name in names:
        if name in parsed:
            return parsed[name]
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _is_quota_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in QUOTA_MARKERS)


def _is_rate_limited(exc: Exception) -> bool:
    return isinstance(exc, anthropic.RateLimitError) or getattr(exc, "status_code", None) == 429


class AINegotiationService:
    """Service for LLM-powered counter-offers and pricing advice."""

    def __init__(self, client: Optional[Any] = None):
        self.model = settings.NEGOTIATION_LLM_MODEL
        self.enabled = settings.ENABLE_AI_NEGOTIATION

        if client is not None:
            self.client = client
        elif settings.NEGOTIATION_LLM_API_KEY and self.enabled:
            # Retries are handled by _with_retries so quota errors are never repeated
            self.client = anthropic.AsyncAnthropic(
                api_key=settings.NEGOTIATION_LLM_API_KEY,
                timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
                max_retries=0,
            )
        else:
            self.client = None
            logger.warning("AI negotiation disabled or API key not configured")

    @property
    def available(self) -> bool:
        return self.enabled and self.client is not None

    async def negotiate_price(self, context: NegotiationContext) -> AICounterOffer:
        """
        Ask Claude for a counter-offer.

        Output that cannot be parsed never raises: it degrades to a fixed
        apology with no counter offer.

        Args:
            context: Product, current offer, buyer message and history

        Returns:
            Structured counter-offer

        Raises:
            AIQuotaExceededError: Provider quota or billing exhausted
            AIServiceError: Not configured, timed out or retries exhausted
        """
        prompt = self._build_negotiation_prompt(context)

        logger.info(
            f"Requesting AI counter-offer for {context.product_name}: "
            f"listed {context.listed_price}, current offer {context.current_offer}"
        )

        text = await self._generate(prompt, temperature=settings.NEGOTIATION_TEMPERATURE)
        parsed = extract_json_object(text)

        if parsed is None:
            logger.warning(f"Failed to parse AI negotiation output: {text[:200]!r}")
            return fallback_counter_offer()

        recommendation = _text(_field(parsed, "acceptance_recommendation", "acceptanceRecommendation"))
        recommendation = recommendation.strip().lower()
        if recommendation not in RECOMMENDATIONS:
            recommendation = "counter"

        offer = AICounterOffer(
            response=_text(parsed.get("response")) or FALLBACK_RESPONSE,
            counter_offer=normalize_price(_field(parsed, "counter_offer", "counterOffer")),
            reasoning=_text(parsed.get("reasoning")),
            acceptance_recommendation=recommendation,
            market_justification=_text(_field(parsed, "market_justification", "marketJustification")),
        )

        logger.info(f"AI counter-offer: {offer.counter_offer} ({offer.acceptance_recommendation})")

        return offer

    async def generate_price_recommendation(
        self,
        product: Product,
        market_data: Optional[MarketData] = None
    ) -> PriceRecommendation:
        """
        Recommend a price for a product given optional market context.

        Raises:
            AIQuotaExceededError: Provider quota or billing exhausted
            AIServiceError: Call failed or the output lacks required fields
        """
        prompt = self._build_price_prompt(product, market_data or MarketData())
        text = await self._generate(prompt, temperature=settings.PRICE_RECOMMENDATION_TEMPERATURE)

        parsed = extract_json_object(text)
        if parsed is None:
            logger.error(f"Unparsable price recommendation: {text[:200]!r}")
            raise AIServiceError("Failed to generate price recommendation: output was not valid JSON")

        recommended_price = normalize_price(_field(parsed, "recommended_price", "recommendedPrice"))
        price_change = normalize_amount(_field(parsed, "price_change", "priceChange"))
        price_change_percent = normalize_amount(_field(parsed, "price_change_percent", "priceChangePercent"))
        reasoning = _field(parsed, "reasoning")
        market_analysis = _field(parsed, "market_analysis", "marketAnalysis")

        missing = [
            name for name, value in (
                ("recommended_price", recommended_price),
                ("price_change", price_change),
                ("price_change_percent", price_change_percent),
            ) if value is None
        ]
        missing += [
            name for name, value in (("reasoning", reasoning), ("market_analysis", market_analysis))
            if not isinstance(value, str)
        ]
        if missing:
            raise AIServiceError(
                f"Failed to generate price recommendation: {', '.join(missing)} missing or invalid"
            )

        confidence = normalize_number(parsed.get("confidence"))
        if confidence is None:
            confidence = Decimal("0.5")
        confidence = min(max(confidence, Decimal(0)), Decimal(1))

        return PriceRecommendation(
            recommended_price=recommended_price,
            price_change=price_change,
            price_change_percent=price_change_percent,
            reasoning=reasoning,
            confidence=float(confidence),
            market_analysis=market_analysis,
        )

    async def _generate(self, prompt: str, temperature: float) -> str:
        """Run one prompt through Claude and return the concatenated text blocks."""
        if not self.available:
            raise AIServiceError("AI negotiation is not configured")

        async def call():
            return await self.client.messages.create(
                model=self.model,
                max_tokens=settings.AI_MAX_OUTPUT_TOKENS,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}]
            )

        response = await self._with_retries(call)

        return "".join(
            block.text for block in response.content
            if getattr(block, "type", "text") == "text"
        )

    async def _with_retries(self, call):
        """
        Retry rate-limited calls with jittered exponential backoff.

        Quota and billing failures raise immediately; anything else that is
        not a rate limit fails on the first attempt.
        """
        attempts = max(1, settings.AI_MAX_ATTEMPTS)

        for attempt in range(attempts):
            try:
                return await call()
            except anthropic.APIError as e:
                if _is_quota_error(e):
                    logger.error(f"AI quota exhausted: {e}")
                    raise AIQuotaExceededError(str(e)) from e

                if not _is_rate_limited(e):
                    logger.error(f"AI request failed: {e}")
                    raise AIServiceError(f"AI request failed: {e}") from e

                if attempt == attempts - 1:
                    logger.error(f"AI request still rate limited after {attempts} attempts")
                    raise AIServiceError("AI service is rate limited, retries exhausted") from e

                delay = settings.AI_RETRY_BASE_DELAY * (2 ** attempt) + random.uniform(0, settings.AI_RETRY_JITTER)
                logger.warning(
                    f"AI request rate limited (attempt {attempt + 1}/{attempts}), retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

    def _build_negotiation_prompt(self, context: NegotiationContext) -> str:
        """Construct the negotiation prompt for Claude."""
        history = json.dumps(context.history, default=str)

        prompt = f"""You are an AI negotiation assistant for a B2B marketplace. Help negotiate the best price for both parties.

Product Details:
- Name: {context.product_name}
- Listed Price: ${context.listed_price}
- Current Offer: ${context.current_offer}
- Min Order Quantity: {context.min_order_quantity}

Buyer's Latest Message: "{context.buyer_message}"

Negotiation History: {history}

Provide a negotiation response in JSON format:
{{
  "response": "Professional response to the buyer",
  "counter_offer": number,
  "reasoning": "Why this counter-offer makes sense",
  "acceptance_recommendation": "suggest" | "accept" | "counter",
  "market_justification": "Market-based reasoning for the price"
}}"""

        return prompt

    def _build_price_prompt(self, product: Product, market_data: MarketData) -> str:
        """Construct the pricing prompt for Claude."""
        avg_price = market_data.avg_price if market_data.avg_price is not None else "unknown"
        competitors = json.dumps(market_data.competitors, default=str)

        prompt = f"""Analyze the following product and market data to provide optimal pricing recommendations:

Product: {product.name}
Current Price: ${product.price}
Category: {product.category_name or 'unknown'}
Stock Quantity: {product.stock_quantity}
Views: {product.views}
Rating: {product.rating}

Market Data:
- Similar products average price: {avg_price}
- Market demand trend: {market_data.demand_trend or 'stable'}
- Competitor prices: {competitors}

Please provide pricing recommendations in JSON only with the following structure:
{{
  "recommended_price": number,
  "price_change": number,
  "price_change_percent": number,
  "reasoning": string,
  "confidence": number,
  "market_analysis": string
}}

Ensure the output is valid JSON and nothing else."""

        return prompt


# Global service instance
ai_negotiation_service = AINegotiationService()
