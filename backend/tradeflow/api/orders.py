"""
Order endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.api.deps import get_db, get_current_principal, require_vendor
from tradeflow.core.security import Principal
from tradeflow.services import order_service
from tradeflow.schemas.order import OrderResponse, OrderStatusUpdate

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """List orders (buyers: placed, vendors: received, admins: all)."""
    return await order_service.list_orders(db, principal, status_filter=status_filter)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Get order details."""
    return await order_service.get_order(db, order_id, principal)


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_vendor)
):
    """
    Move an order along pending -> confirmed -> processing -> shipped -> delivered.

    Orders can be cancelled until they ship.
    """
    return await order_service.update_order_status(db, order_id, principal.id, request.status)
