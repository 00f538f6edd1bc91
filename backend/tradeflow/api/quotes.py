"""
Quote acceptance endpoint.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.api.deps import get_db, require_buyer
from tradeflow.core.exceptions import AlreadyAcceptedError
from tradeflow.core.security import Principal
from tradeflow.services import quote_service
from tradeflow.schemas.quote import QuoteAcceptResponse

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("/{quote_id}/accept", response_model=QuoteAcceptResponse)
async def accept_quote(
    quote_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_buyer)
):
    """
    Accept a quote.

    Rejects every other quote on the RFQ and creates a pending order for
    price x quantity. Accepting again returns the existing settlement
    instead of creating a second order.
    """
    try:
        acceptance = await quote_service.accept_quote(db, quote_id, principal.id)
    except AlreadyAcceptedError as e:
        if e.result is None:
            raise
        acceptance = e.result

    return QuoteAcceptResponse.model_validate(acceptance, from_attributes=True)
