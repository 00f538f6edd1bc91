"""
AI pricing endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.api.deps import get_db, require_vendor
from tradeflow.core.exceptions import NotFoundError
from tradeflow.core.security import Principal
from tradeflow.models.product import Product
from tradeflow.services.ai_negotiator import ai_negotiation_service
from tradeflow.schemas.ai import PriceRecommendationRequest, PriceRecommendation

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/price-recommendation", response_model=PriceRecommendation)
async def price_recommendation(
    request: PriceRecommendationRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_vendor)
):
    """
    Get an AI price recommendation for one of your products.

    Products owned by other vendors are reported as not found.
    """
    result = await db.execute(
        select(Product).where(Product.id == request.product_id, Product.vendor_id == principal.id)
    )
    product = result.scalar_one_or_none()

    if not product:
        raise NotFoundError("Product", request.product_id)

    # No transaction held across the AI call
    await db.commit()

    return await ai_negotiation_service.generate_price_recommendation(product, request.market_data)
