"""Quote lifecycle service: RFQs, vendor quotes and quote acceptance."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeflow.core.exceptions import (
    AlreadyAcceptedError,
    ForbiddenError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from tradeflow.core.security import Principal, BUYER, VENDOR
from tradeflow.models.order import Order
from tradeflow.models.product import Product
from tradeflow.models.quote import Quote, QuoteStatus
from tradeflow.models.rfq import RFQ, RFQStatus
from tradeflow.schemas.quote import QuoteSubmit
from tradeflow.schemas.rfq import RFQCreate
from tradeflow.services.order_service import build_order, get_order_for_quote

logger = logging.getLogger(__name__)


@dataclass
class QuoteAcceptance:
    """Settlement of an RFQ on a single quote."""
    quote: Quote
    rejected_quotes: List[Quote] = field(default_factory=list)
    order: Optional[Order] = None


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# RFQ operations

async def create_rfq(db: AsyncSession, buyer_id: str, rfq_data: RFQCreate) -> RFQ:
    """
    Open a new RFQ for a buyer.

    Raises:
        NotFoundError: Referenced product does not exist
        ValidationError: Deadline is in the past
    """
    deadline = _as_utc_naive(rfq_data.deadline)
    if deadline is not None and deadline <= datetime.utcnow():
        raise ValidationError("RFQ deadline must be in the future")

    if rfq_data.product_id:
        result = await db.execute(select(Product.id).where(Product.id == rfq_data.product_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Product", rfq_data.product_id)

    rfq = RFQ(
        buyer_id=buyer_id,
        product_id=rfq_data.product_id,
        title=rfq_data.title,
        description=rfq_data.description,
        quantity=rfq_data.quantity,
        target_price=rfq_data.target_price,
        deadline=deadline,
        status=RFQStatus.OPEN,
    )

    db.add(rfq)
    await db.commit()
    await db.refresh(rfq)

    logger.info(f"RFQ {rfq.id} opened by buyer {buyer_id} (qty {rfq.quantity})")

    return rfq


async def get_rfq(db: AsyncSession, rfq_id: str) -> RFQ:
    result = await db.execute(select(RFQ).where(RFQ.id == rfq_id))
    rfq = result.scalar_one_or_none()

    if not rfq:
        raise NotFoundError("RFQ", rfq_id)

    return rfq


async def list_rfqs(
    db: AsyncSession,
    principal: Principal,
    status_filter: Optional[str] = None,
    incoming_only: bool = False
) -> List[RFQ]:
    """
    List RFQs visible to the principal.

    Buyers see their own RFQs. Vendors see open RFQs; with ``incoming_only``
    only those referencing one of their products. Admins see everything.
    """
    query = select(RFQ)

    if principal.role == BUYER:
        query = query.where(RFQ.buyer_id == principal.id)
    elif principal.role == VENDOR:
        query = query.where(RFQ.status == RFQStatus.OPEN)
        if incoming_only:
            vendor_products = select(Product.id).where(Product.vendor_id == principal.id)
            query = query.where(RFQ.product_id.in_(vendor_products))

    if status_filter:
        query = query.where(RFQ.status == status_filter)

    result = await db.execute(query.order_by(RFQ.created_at.desc()))
    return list(result.scalars().all())


async def close_rfq(db: AsyncSession, rfq_id: str, buyer_id: str, new_status: str = RFQStatus.CLOSED) -> RFQ:
    """
    Manually end an open RFQ without accepting a quote.

    Raises:
        ForbiddenError: Requester does not own the RFQ
        InvalidStateError: RFQ is not open
    """
    if new_status not in RFQStatus.MANUAL_TERMINAL:
        raise ValidationError(f"RFQ can only be manually set to {', '.join(RFQStatus.MANUAL_TERMINAL)}")

    rfq = await get_rfq(db, rfq_id)

    if rfq.buyer_id != buyer_id:
        raise ForbiddenError("Not authorized - you did not create this RFQ")

    if rfq.status != RFQStatus.OPEN:
        raise InvalidStateError(f"Cannot set RFQ with status '{rfq.status}' to '{new_status}'")

    claimed = await db.execute(
        update(RFQ)
        .where(RFQ.id == rfq_id, RFQ.status == RFQStatus.OPEN)
        .values(status=new_status, updated_at=datetime.utcnow())
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("RFQ is no longer open")

    await db.commit()
    await db.refresh(rfq)

    logger.info(f"RFQ {rfq.id} manually set to {new_status}")

    return rfq


# Quote operations

async def _find_vendor_quote(db: AsyncSession, rfq_id: str, vendor_id: str) -> Optional[Quote]:
    result = await db.execute(
        select(Quote)
        .where(Quote.rfq_id == rfq_id, Quote.vendor_id == vendor_id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


def _apply_terms(quote: Quote, terms: QuoteSubmit, valid_until: Optional[datetime]) -> None:
    quote.price = terms.price
    quote.quantity = terms.quantity
    quote.delivery_time = terms.delivery_time
    quote.notes = terms.notes
    if valid_until is not None:
        quote.valid_until = valid_until


async def submit_quote(
    db: AsyncSession,
    rfq_id: str,
    vendor_id: str,
    terms: QuoteSubmit
) -> tuple[Quote, bool]:
    """
    Create or update a vendor's quote on an RFQ.

    Submission is idempotent per (rfq, vendor): a vendor that already quoted
    gets its existing quote updated in place. The insert relies on the
    (rfq_id, vendor_id) unique constraint, so two concurrent first
    submissions still end with a single row.

    Args:
        db: Database session
        rfq_id: RFQ being quoted
        vendor_id: Quoting vendor
        terms: Price terms

    Returns:
        Tuple of (quote, created)

    Raises:
        NotFoundError: RFQ does not exist
        InvalidStateError: RFQ is not open or its deadline has passed
        ValidationError: Missing/invalid price, quantity or validity date
    """
    if terms.price is None or terms.price <= 0:
        raise ValidationError("Price is required and must be positive")
    if terms.quantity is None or terms.quantity <= 0:
        raise ValidationError("Quantity is required and must be positive")

    now = datetime.utcnow()
    valid_until = _as_utc_naive(terms.valid_until)
    if valid_until is not None and valid_until <= now:
        raise ValidationError("valid_until must be in the future")

    rfq = await get_rfq(db, rfq_id)

    if rfq.status != RFQStatus.OPEN:
        raise InvalidStateError(f"RFQ not open for quotes (status '{rfq.status}')")

    if rfq.deadline is not None and rfq.deadline < now:
        raise InvalidStateError("RFQ deadline has passed")

    quote = await _find_vendor_quote(db, rfq_id, vendor_id)
    created = False

    if quote is None:
        quote = Quote(
            rfq_id=rfq_id,
            vendor_id=vendor_id,
            product_id=rfq.product_id,
            is_accepted=False,
            status=QuoteStatus.PENDING,
        )
        _apply_terms(quote, terms, valid_until)
        db.add(quote)
        try:
            await db.flush()
            created = True
        except IntegrityError:
            # A concurrent submission by the same vendor inserted first
            await db.rollback()
            quote = await _find_vendor_quote(db, rfq_id, vendor_id)
            if quote is None:
                raise

    if not created:
        if quote.status != QuoteStatus.PENDING:
            raise InvalidStateError(f"Quote is already {quote.status}")
        _apply_terms(quote, terms, valid_until)

    await db.commit()
    await db.refresh(quote)

    logger.info(
        f"Quote {quote.id} {'created' if created else 'updated'} by vendor {vendor_id} "
        f"on RFQ {rfq_id}: {quote.price} x {quote.quantity}"
    )

    return quote, created


async def list_quotes(db: AsyncSession, rfq_id: str, principal: Principal) -> List[Quote]:
    """
    List the quotes on an RFQ (RFQ owner, any vendor, or admin).
    """
    rfq = await get_rfq(db, rfq_id)

    if principal.role == BUYER and rfq.buyer_id != principal.id:
        raise ForbiddenError("Not authorized to view quotes for this RFQ")

    result = await db.execute(
        select(Quote).where(Quote.rfq_id == rfq_id).order_by(Quote.created_at)
    )
    return list(result.scalars().all())


async def _existing_acceptance(db: AsyncSession, rfq_id: str) -> Optional[QuoteAcceptance]:
    """Load the settlement already recorded for an RFQ, if any."""
    result = await db.execute(select(Quote).where(Quote.rfq_id == rfq_id))
    quotes = list(result.scalars().all())

    accepted = next((q for q in quotes if q.is_accepted), None)
    if accepted is None:
        return None

    return QuoteAcceptance(
        quote=accepted,
        rejected_quotes=[q for q in quotes if q.id != accepted.id],
        order=await get_order_for_quote(db, accepted.id),
    )


async def _lost_claim(db: AsyncSession, rfq_id: str) -> MarketplaceError:
    """Error for an accept whose claim lost: settled by another accept, or closed meanwhile."""
    result = await db.execute(select(RFQ.status).where(RFQ.id == rfq_id))
    status = result.scalar_one()

    if status == RFQStatus.ACCEPTED:
        return AlreadyAcceptedError(rfq_id, await _existing_acceptance(db, rfq_id))

    return InvalidStateError(f"Cannot accept a quote on an RFQ with status '{status}'")


async def accept_quote(db: AsyncSession, quote_id: str, requester_id: str) -> QuoteAcceptance:
    """
    Accept a quote, rejecting its siblings and creating the order.

    Everything happens in one transaction. The RFQ's ``open -> accepted``
    flip is a compare-and-set, so of two concurrent accepts on the same RFQ
    exactly one wins; the other observes the winner and raises
    AlreadyAcceptedError carrying the existing settlement.

    Args:
        db: Database session
        quote_id: Quote to accept
        requester_id: Must be the RFQ's buyer

    Returns:
        QuoteAcceptance with the accepted quote, rejected siblings and order

    Raises:
        NotFoundError: Quote or RFQ does not exist
        ForbiddenError: Requester is not the RFQ buyer
        AlreadyAcceptedError: The RFQ is already settled (idempotent replay)
        InvalidStateError: RFQ closed/rejected, or the quote has expired
    """
    result = await db.execute(select(Quote).where(Quote.id == quote_id))
    quote = result.scalar_one_or_none()

    if not quote:
        raise NotFoundError("Quote", quote_id)

    rfq = await get_rfq(db, quote.rfq_id)
    rfq_id = rfq.id

    if rfq.buyer_id != requester_id:
        raise ForbiddenError("Not authorized to accept this quote")

    if quote.is_accepted or rfq.status == RFQStatus.ACCEPTED:
        raise AlreadyAcceptedError(rfq.id, await _existing_acceptance(db, rfq.id))

    if rfq.status != RFQStatus.OPEN:
        raise InvalidStateError(f"Cannot accept a quote on an RFQ with status '{rfq.status}'")

    now = datetime.utcnow()
    if quote.valid_until is not None and quote.valid_until < now:
        raise InvalidStateError("Quote has expired")

    try:
        # Claim the RFQ; zero rows means a concurrent accept already won
        claimed = await db.execute(
            update(RFQ)
            .where(RFQ.id == rfq.id, RFQ.status == RFQStatus.OPEN)
            .values(status=RFQStatus.ACCEPTED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            await db.rollback()
            raise await _lost_claim(db, rfq_id)

        quote.is_accepted = True
        quote.status = QuoteStatus.ACCEPTED

        siblings_result = await db.execute(
            select(Quote).where(Quote.rfq_id == rfq.id, Quote.id != quote.id).with_for_update()
        )
        rejected_quotes = list(siblings_result.scalars().all())
        for sibling in rejected_quotes:
            sibling.is_accepted = False
            sibling.status = QuoteStatus.REJECTED

        order = build_order(
            buyer_id=rfq.buyer_id,
            vendor_id=quote.vendor_id,
            product_id=quote.product_id or rfq.product_id,
            rfq_id=rfq.id,
            quote_id=quote.id,
            quantity=quote.quantity,
            unit_price=quote.price,
        )
        db.add(order)

        await db.commit()
    except (AlreadyAcceptedError, InvalidStateError):
        raise
    except Exception:
        await db.rollback()
        logger.error(f"Accepting quote {quote_id} failed; settlement rolled back", exc_info=True)
        raise

    await db.refresh(quote)
    await db.refresh(order)
    for sibling in rejected_quotes:
        await db.refresh(sibling)

    logger.info(
        f"✅ Quote {quote.id} accepted on RFQ {rfq.id}: order {order.order_number} "
        f"total {order.total_amount}, {len(rejected_quotes)} sibling quote(s) rejected"
    )

    return QuoteAcceptance(quote=quote, rejected_quotes=rejected_quotes, order=order)
