"""
RFQ endpoints: buyers post requests for quotation, vendors quote on them.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.api.deps import get_db, get_current_principal, require_buyer, require_vendor
from tradeflow.core.security import Principal
from tradeflow.services import quote_service
from tradeflow.schemas.rfq import RFQCreate, RFQClose, RFQResponse
from tradeflow.schemas.quote import QuoteSubmit, QuoteResponse

router = APIRouter(prefix="/rfqs", tags=["rfqs"])


@router.post("", response_model=RFQResponse, status_code=status.HTTP_201_CREATED)
async def create_rfq(
    rfq_data: RFQCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_buyer)
):
    """
    Open a new RFQ.

    Example:
        ```json
        {
          "title": "500 steel brackets",
          "product_id": "product-123",
          "quantity": 500,
          "target_price": "11.00",
          "deadline": "2026-12-01T00:00:00Z"
        }
        ```
    """
    return await quote_service.create_rfq(db, principal.id, rfq_data)


@router.get("", response_model=List[RFQResponse])
async def list_rfqs(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    incoming: bool = Query(False, description="Vendors: only RFQs for your products"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    List RFQs.

    Buyers see their own RFQs, vendors see open RFQs, admins see all.
    """
    return await quote_service.list_rfqs(db, principal, status_filter=status_filter, incoming_only=incoming)


@router.get("/{rfq_id}", response_model=RFQResponse)
async def get_rfq(
    rfq_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Get RFQ details."""
    return await quote_service.get_rfq(db, rfq_id)


@router.post("/{rfq_id}/close", response_model=RFQResponse)
async def close_rfq(
    rfq_id: str,
    request: RFQClose,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_buyer)
):
    """Close or reject an open RFQ without accepting a quote."""
    return await quote_service.close_rfq(db, rfq_id, principal.id, request.status)


@router.post("/{rfq_id}/quotes", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def submit_quote(
    rfq_id: str,
    terms: QuoteSubmit,
    response: Response,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_vendor)
):
    """
    Submit a quote on an RFQ.

    A vendor has at most one quote per RFQ: submitting again updates it.
    Returns 201 when the quote is created and 200 when it is updated.
    """
    quote, created = await quote_service.submit_quote(db, rfq_id, principal.id, terms)

    if not created:
        response.status_code = status.HTTP_200_OK

    return quote


@router.get("/{rfq_id}/quotes", response_model=List[QuoteResponse])
async def list_quotes(
    rfq_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """List the quotes submitted on an RFQ (RFQ owner, vendors, admins)."""
    return await quote_service.list_quotes(db, rfq_id, principal)
