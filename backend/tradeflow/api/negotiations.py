"""
Negotiation endpoints for buyer/vendor price negotiation.
"""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sse_starlette.sse import EventSourceResponse

from tradeflow.api.deps import get_db, get_session_factory, get_current_principal, require_buyer
from tradeflow.core.events import Subscriber, negotiation_rooms
from tradeflow.core.exceptions import AlreadyClosedError
from tradeflow.core.security import Principal
from tradeflow.services.negotiation_service import negotiation_service
from tradeflow.schemas.negotiation import (
    NegotiationCreate,
    NegotiationResponse,
    NegotiationMessageCreate,
    AINegotiateRequest,
    AINegotiateResponse,
    NegotiationAcceptRequest,
    NegotiationAcceptResponse,
)

router = APIRouter(prefix="/negotiations", tags=["negotiations"])


@router.post("", response_model=NegotiationResponse, status_code=status.HTTP_201_CREATED)
async def create_negotiation(
    request: NegotiationCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_buyer)
):
    """
    Start negotiating the price of a product with its vendor.

    Example:
        ```json
        {
          "product_id": "product-123",
          "quantity": 10,
          "initial_offer": "900.00",
          "message": "Can you do 900 per unit for 10?"
        }
        ```

    Returns:
        Negotiation with current_price set to the opening offer (or the listed price)
    """
    return await negotiation_service.create_negotiation(db, principal.id, request)


@router.get("", response_model=List[NegotiationResponse])
async def list_negotiations(
    active: Optional[bool] = Query(None, description="Only active (true) or closed (false) negotiations"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """List your negotiations, newest first."""
    return await negotiation_service.list_negotiations(db, principal, active=active)


@router.get("/{negotiation_id}", response_model=NegotiationResponse)
async def get_negotiation(
    negotiation_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Get a negotiation with its full message history."""
    return await negotiation_service.get_negotiation(db, negotiation_id, principal)


@router.post("/{negotiation_id}/message", response_model=NegotiationResponse)
async def post_message(
    negotiation_id: str,
    request: NegotiationMessageCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Send a message and/or a counter-price.

    An offer becomes the negotiation's current price. The message is pushed
    to everyone in the negotiation room.
    """
    return await negotiation_service.post_message(
        db,
        negotiation_id,
        sender_id=principal.id,
        message=request.message,
        offer=request.offer,
    )


@router.post("/{negotiation_id}/ai-negotiate", response_model=AINegotiateResponse)
async def ai_negotiate(
    negotiation_id: str,
    request: AINegotiateRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Ask the AI negotiator for a counter-offer on this negotiation."""
    negotiation, ai_response = await negotiation_service.ai_negotiate(
        db, negotiation_id, principal.id, request.message
    )

    return AINegotiateResponse.model_validate(
        {"negotiation": negotiation, "ai_response": ai_response},
        from_attributes=True
    )


@router.post("/{negotiation_id}/accept", response_model=NegotiationAcceptResponse)
async def accept_negotiation(
    negotiation_id: str,
    request: Optional[NegotiationAcceptRequest] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Accept the current price.

    Creates one pending order at current_price x quantity. Accepting an
    already accepted negotiation returns the existing order.
    """
    try:
        negotiation, order = await negotiation_service.accept_negotiation(
            db, negotiation_id, principal.id, request.message if request else None
        )
    except AlreadyClosedError as e:
        if e.order is None:
            raise
        negotiation, order = e.negotiation, e.order

    return NegotiationAcceptResponse.model_validate(
        {"negotiation": negotiation, "order": order},
        from_attributes=True
    )


@router.post("/{negotiation_id}/close", response_model=NegotiationResponse)
async def close_negotiation(
    negotiation_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """End the negotiation without a deal."""
    return await negotiation_service.close_negotiation(db, negotiation_id, principal.id)


@router.get("/{negotiation_id}/events")
async def negotiation_events(
    negotiation_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Server-Sent Events stream of one negotiation room.

    Usage:
        const source = new EventSource('/api/negotiations/<id>/events');
        source.addEventListener('negotiation:message', (e) => {
            console.log(JSON.parse(e.data));
        });
    """
    async with session_factory() as db:
        await negotiation_service.get_negotiation(db, negotiation_id, principal)

    subscriber = Subscriber(name=f"sse:{principal.id}")
    negotiation_rooms.join(negotiation_id, subscriber)

    async def generate():
        try:
            async for event in subscriber.events():
                # Check if client disconnected
                if await request.is_disconnected():
                    break

                yield {
                    "event": event["event"],
                    "data": json.dumps(event["data"])
                }
        finally:
            negotiation_rooms.leave_all(subscriber)
            subscriber.close()

    return EventSourceResponse(generate())
