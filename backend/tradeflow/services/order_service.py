"""Order service: building settlement orders and moving them through fulfilment."""

import logging
import secrets
import string
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from tradeflow.core.security import Principal, BUYER, VENDOR
from tradeflow.models.order import Order, OrderStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits

# Valid state transitions
VALID_TRANSITIONS = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
}


def generate_order_number() -> str:
    """Order number in the form ORD-<epoch ms>-<9 upper-case alphanumerics>."""
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def compute_total(unit_price: Decimal, quantity: int) -> Decimal:
    """Exact decimal total, quantized to cents (12.50 x 3 = 37.50)."""
    return (Decimal(unit_price) * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


def build_order(
    *,
    buyer_id: str,
    vendor_id: str,
    quantity: int,
    unit_price: Decimal,
    product_id: Optional[str] = None,
    rfq_id: Optional[str] = None,
    quote_id: Optional[str] = None,
    negotiation_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    """
    Build a pending order for a settlement.

    The caller adds it to the session inside its own settlement transaction,
    so the order commits together with the quote/negotiation state change.
    """
    unit_price = Decimal(unit_price).quantize(CENTS, rounding=ROUND_HALF_UP)
    return Order(
        order_number=generate_order_number(),
        buyer_id=buyer_id,
        vendor_id=vendor_id,
        product_id=product_id,
        rfq_id=rfq_id,
        quote_id=quote_id,
        negotiation_id=negotiation_id,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=compute_total(unit_price, quantity),
        status=OrderStatus.PENDING,
        notes=notes,
    )


async def get_order_by_id(db: AsyncSession, order_id: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.id == order_id))
    return result.scalar_one_or_none()


async def get_order_for_quote(db: AsyncSession, quote_id: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.quote_id == quote_id))
    return result.scalar_one_or_none()


async def get_order_for_negotiation(db: AsyncSession, negotiation_id: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.negotiation_id == negotiation_id))
    return result.scalar_one_or_none()


async def list_orders(
    db: AsyncSession,
    principal: Principal,
    status_filter: Optional[str] = None
) -> List[Order]:
    """
    List orders visible to the principal (buyers: placed, vendors: received, admins: all).
    """
    query = select(Order)

    if principal.role == BUYER:
        query = query.where(Order.buyer_id == principal.id)
    elif principal.role == VENDOR:
        query = query.where(Order.vendor_id == principal.id)

    if status_filter:
        query = query.where(Order.status == status_filter)

    result = await db.execute(query.order_by(Order.created_at.desc()))
    return list(result.scalars().all())


async def get_order(db: AsyncSession, order_id: str, principal: Principal) -> Order:
    """Fetch an order for one of its parties."""
    order = await get_order_by_id(db, order_id)

    if not order:
        raise NotFoundError("Order", order_id)

    if not principal.is_admin and principal.id not in (order.buyer_id, order.vendor_id):
        raise ForbiddenError("Not authorized to view this order")

    return order


async def update_order_status(
    db: AsyncSession,
    order_id: str,
    vendor_id: str,
    new_status: str
) -> Order:
    """
    Move an order along its fulfilment path.

    Args:
        db: Database session
        order_id: Order id
        vendor_id: Vendor requesting the change (must own the order)
        new_status: Target status

    Returns:
        Updated order

    Raises:
        NotFoundError: Order does not exist
        ForbiddenError: Requester is not the order's vendor
        InvalidStateError: Transition not allowed from the current status
    """
    result = await db.execute(
        select(Order).where(Order.id == order_id).with_for_update()
    )
    order = result.scalar_one_or_none()

    if not order:
        raise NotFoundError("Order", order_id)

    if order.vendor_id != vendor_id:
        raise ForbiddenError("Not authorized - you are not the vendor for this order")

    if new_status not in VALID_TRANSITIONS.get(order.status, []):
        raise InvalidStateError(f"Cannot move order from '{order.status}' to '{new_status}'")

    order.status = new_status
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order {order.order_number} moved to {new_status}")

    return order
