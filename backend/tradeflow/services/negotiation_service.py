"""
Negotiation session service: buyer/vendor price negotiation with AI assistance.

Every mutation that other participants must see is published to the
negotiation's room after its transaction commits. Appends, settlements and
closes for one negotiation run under ``negotiation_rooms.ordered`` so the
broadcast order of a room is the commit order of its messages.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradeflow.core.events import NegotiationRoomRegistry, negotiation_rooms
from tradeflow.core.exceptions import (
    AlreadyClosedError,
    ForbiddenError,
    NegotiationClosedError,
    NotFoundError,
    ValidationError,
)
from tradeflow.core.security import Principal, BUYER, VENDOR
from tradeflow.models.negotiation import AI_SENDER_ID, Negotiation, NegotiationMessage, SenderRole
from tradeflow.models.order import Order
from tradeflow.models.product import Product
from tradeflow.models.rfq import RFQ
from tradeflow.schemas.ai import AICounterOffer
from tradeflow.schemas.negotiation import NegotiationCreate, NegotiationMessageResponse
from tradeflow.schemas.order import OrderResponse
from tradeflow.services.ai_negotiator import AINegotiationService, NegotiationContext, ai_negotiation_service
from tradeflow.services.order_service import build_order, get_order_for_negotiation

logger = logging.getLogger(__name__)

# Room event names
MESSAGE_EVENT = "negotiation:message"
DEAL_ACCEPTED_EVENT = "deal:accepted"
CLOSED_EVENT = "negotiation:closed"


def message_payload(message: NegotiationMessage) -> dict:
    """JSON payload broadcast for an appended message."""
    payload = NegotiationMessageResponse.model_validate(message).model_dump(mode="json")
    payload["timestamp"] = payload["created_at"]
    return payload


def _history(negotiation: Negotiation) -> List[dict]:
    return [
        {
            "sender": m.sender,
            "message": m.message,
            "offer": str(m.offer) if m.offer is not None else None,
            "timestamp": m.created_at.isoformat() if m.created_at else None,
        }
        for m in negotiation.messages
    ]


class NegotiationSessionService:
    """Service for buyer/vendor negotiation sessions."""

    def __init__(
        self,
        ai: Optional[AINegotiationService] = None,
        rooms: Optional[NegotiationRoomRegistry] = None
    ):
        self.ai = ai or ai_negotiation_service
        self.rooms = rooms or negotiation_rooms

    async def _load(self, db: AsyncSession, negotiation_id: str, for_update: bool = False) -> Negotiation:
        query = (
            select(Negotiation)
            .where(Negotiation.id == negotiation_id)
            .options(selectinload(Negotiation.messages))
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await db.execute(query)
        negotiation = result.scalar_one_or_none()

        if not negotiation:
            raise NotFoundError("Negotiation", negotiation_id)

        return negotiation

    async def _append(
        self,
        db: AsyncSession,
        negotiation: Negotiation,
        sender: str,
        sender_id: str,
        message: str = "",
        offer: Optional[Decimal] = None,
        ai_data: Optional[dict] = None
    ) -> NegotiationMessage:
        """Append the next message; an offer becomes the current price."""
        result = await db.execute(
            select(func.coalesce(func.max(NegotiationMessage.sequence), 0))
            .where(NegotiationMessage.negotiation_id == negotiation.id)
        )
        sequence = result.scalar_one() + 1

        entry = NegotiationMessage(
            negotiation_id=negotiation.id,
            sequence=sequence,
            sender=sender,
            sender_id=sender_id,
            message=message or "",
            offer=offer,
            ai_data=ai_data,
            created_at=datetime.utcnow(),
        )
        db.add(entry)

        if offer is not None:
            negotiation.current_price = offer
        negotiation.updated_at = entry.created_at

        await db.flush()
        return entry

    async def create_negotiation(
        self,
        db: AsyncSession,
        buyer_id: str,
        data: NegotiationCreate
    ) -> Negotiation:
        """
        Buyer opens a negotiation on a product.

        Args:
            db: Database session
            buyer_id: Buyer starting the negotiation
            data: Product, quantity, optional opening offer/message/RFQ

        Returns:
            Created Negotiation with its messages

        Raises:
            NotFoundError: Product (or referenced RFQ) does not exist
            ForbiddenError: Buyer is the product's vendor
        """
        result = await db.execute(select(Product).where(Product.id == data.product_id))
        product = result.scalar_one_or_none()

        if not product or not product.is_active:
            raise NotFoundError("Product", data.product_id)

        if product.vendor_id == buyer_id:
            raise ForbiddenError("Cannot negotiate on your own product")

        if data.rfq_id:
            result = await db.execute(select(RFQ.id).where(RFQ.id == data.rfq_id))
            if result.scalar_one_or_none() is None:
                raise NotFoundError("RFQ", data.rfq_id)

        negotiation = Negotiation(
            rfq_id=data.rfq_id,
            product_id=product.id,
            buyer_id=buyer_id,
            vendor_id=product.vendor_id,
            quantity=data.quantity or product.min_order_quantity,
            initial_price=product.price,
            current_price=product.price,
            is_active=True,
            is_accepted=False,
        )
        db.add(negotiation)
        await db.flush()

        if data.initial_offer is not None:
            text = data.message or f"I'd like to negotiate this price. My initial offer is ${data.initial_offer}"
            await self._append(
                db,
                negotiation,
                sender=SenderRole.BUYER,
                sender_id=buyer_id,
                message=text,
                offer=data.initial_offer,
            )

        await db.commit()

        logger.info(
            f"Negotiation {negotiation.id} started by buyer {buyer_id} on product {product.id} "
            f"(listed {product.price}, opening offer {data.initial_offer})"
        )

        return await self._load(db, negotiation.id)

    async def list_negotiations(
        self,
        db: AsyncSession,
        principal: Principal,
        active: Optional[bool] = None
    ) -> List[Negotiation]:
        """List negotiations the principal takes part in (admins: all), newest first."""
        query = select(Negotiation).options(selectinload(Negotiation.messages))

        if principal.role == BUYER:
            query = query.where(Negotiation.buyer_id == principal.id)
        elif principal.role == VENDOR:
            query = query.where(Negotiation.vendor_id == principal.id)

        if active is not None:
            query = query.where(Negotiation.is_active == active)

        result = await db.execute(query.order_by(Negotiation.created_at.desc()))
        return list(result.scalars().all())

    async def get_negotiation(self, db: AsyncSession, negotiation_id: str, principal: Principal) -> Negotiation:
        negotiation = await self._load(db, negotiation_id)

        if not principal.is_admin and not negotiation.is_participant(principal.id):
            raise ForbiddenError("Not authorized to view this negotiation")

        return negotiation

    async def post_message(
        self,
        db: AsyncSession,
        negotiation_id: str,
        sender_id: str,
        message: str = "",
        offer: Optional[Decimal] = None,
        sender: Optional[str] = None
    ) -> Negotiation:
        """
        Append a buyer/vendor message, optionally carrying a counter-price.

        Raises:
            ValidationError: No text and no offer, or a non-positive offer
            NotFoundError: Negotiation does not exist
            ForbiddenError: Sender is not the negotiation's buyer or vendor
            NegotiationClosedError: Negotiation is no longer active
        """
        if offer is not None and offer <= 0:
            raise ValidationError("Offer must be positive")

        if not (message or "").strip() and offer is None:
            raise ValidationError("A message or an offer is required")

        async with self.rooms.ordered(negotiation_id):
            negotiation = await self._load(db, negotiation_id, for_update=True)

            role = negotiation.role_of(sender_id)
            if role is None or (sender is not None and sender != role):
                raise ForbiddenError("Not authorized - you are not a participant in this negotiation")

            if not negotiation.is_active:
                raise NegotiationClosedError(negotiation_id)

            entry = await self._append(db, negotiation, sender=role, sender_id=sender_id, message=message, offer=offer)
            await db.commit()

            logger.info(
                f"Negotiation {negotiation_id} message #{entry.sequence} from {role}"
                + (f" with offer {offer}" if offer is not None else "")
            )

            self.rooms.publish(negotiation_id, MESSAGE_EVENT, message_payload(entry))

        return await self._load(db, negotiation_id)

    async def ai_negotiate(
        self,
        db: AsyncSession,
        negotiation_id: str,
        requester_id: str,
        buyer_message: str = ""
    ) -> Tuple[Negotiation, AICounterOffer]:
        """
        Ask the AI negotiator for a counter-offer and append it as an AI message.

        The AI call runs with no database or room lock held. If the
        negotiation is closed while the AI is answering, nothing is appended.

        Raises:
            NotFoundError: Negotiation does not exist
            ForbiddenError: Requester is not a participant
            NegotiationClosedError: Negotiation is (or became) inactive
            AIServiceError: AI call failed; the negotiation is unchanged
        """
        negotiation = await self._load(db, negotiation_id)

        if not negotiation.is_participant(requester_id):
            raise ForbiddenError("Not authorized - you are not a participant in this negotiation")

        if not negotiation.is_active:
            raise NegotiationClosedError(negotiation_id)

        result = await db.execute(select(Product).where(Product.id == negotiation.product_id))
        product = result.scalar_one()

        context = NegotiationContext(
            product_name=product.name,
            listed_price=product.price,
            min_order_quantity=product.min_order_quantity,
            current_offer=negotiation.current_price,
            buyer_message=buyer_message,
            history=_history(negotiation),
        )

        # End the read transaction before the slow external call
        await db.commit()

        ai_response = await self.ai.negotiate_price(context)

        async with self.rooms.ordered(negotiation_id):
            negotiation = await self._load(db, negotiation_id, for_update=True)

            if not negotiation.is_active:
                await db.rollback()
                logger.info(f"Negotiation {negotiation_id} closed during AI turn; counter-offer discarded")
                raise NegotiationClosedError(negotiation_id)

            entry = await self._append(
                db,
                negotiation,
                sender=SenderRole.AI,
                sender_id=AI_SENDER_ID,
                message=ai_response.response,
                offer=ai_response.counter_offer,
                ai_data={
                    "reasoning": ai_response.reasoning,
                    "recommendation": ai_response.acceptance_recommendation,
                    "market_justification": ai_response.market_justification,
                },
            )
            await db.commit()

            logger.info(
                f"AI counter-offer on negotiation {negotiation_id}: "
                f"{ai_response.counter_offer} ({ai_response.acceptance_recommendation})"
            )

            self.rooms.publish(negotiation_id, MESSAGE_EVENT, message_payload(entry))

        return await self._load(db, negotiation_id), ai_response

    async def _raise_already_closed(self, db: AsyncSession, negotiation_id: str):
        negotiation = await self._load(db, negotiation_id)
        order = await get_order_for_negotiation(db, negotiation_id)
        raise AlreadyClosedError(negotiation, order)

    async def accept_negotiation(
        self,
        db: AsyncSession,
        negotiation_id: str,
        requester_id: str,
        message: Optional[str] = None
    ) -> Tuple[Negotiation, Order]:
        """
        Accept the current price and create the order.

        The ``active -> accepted`` flip is a compare-and-set in the same
        transaction as the order insert, so a negotiation yields at most one
        order however many accepts race.

        Args:
            db: Database session
            negotiation_id: Negotiation to settle
            requester_id: Buyer or vendor of the negotiation
            message: Optional closing note, broadcast with the deal

        Returns:
            Tuple of (negotiation, order)

        Raises:
            NotFoundError: Negotiation does not exist
            ForbiddenError: Requester is not a participant
            AlreadyClosedError: Negotiation already settled or closed; carries
                the existing order when there is one
        """
        async with self.rooms.ordered(negotiation_id):
            negotiation = await self._load(db, negotiation_id)

            role = negotiation.role_of(requester_id)
            if role is None:
                raise ForbiddenError("Not authorized - you are not a participant in this negotiation")

            if not negotiation.is_active:
                await self._raise_already_closed(db, negotiation_id)

            try:
                now = datetime.utcnow()
                claimed = await db.execute(
                    update(Negotiation)
                    .where(Negotiation.id == negotiation_id, Negotiation.is_active.is_(True))
                    .values(
                        is_active=False,
                        is_accepted=True,
                        final_price=Negotiation.current_price,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount != 1:
                    await db.rollback()
                    await self._raise_already_closed(db, negotiation_id)

                # Price as of the claim, not as first read
                result = await db.execute(
                    select(Negotiation.final_price).where(Negotiation.id == negotiation_id)
                )
                final_price = result.scalar_one()

                order = build_order(
                    buyer_id=negotiation.buyer_id,
                    vendor_id=negotiation.vendor_id,
                    product_id=negotiation.product_id,
                    rfq_id=negotiation.rfq_id,
                    negotiation_id=negotiation_id,
                    quantity=negotiation.quantity,
                    unit_price=final_price,
                    notes=message,
                )
                db.add(order)

                await db.commit()
            except AlreadyClosedError:
                raise
            except Exception:
                await db.rollback()
                logger.error(f"Accepting negotiation {negotiation_id} failed; settlement rolled back", exc_info=True)
                raise

            await db.refresh(order)
            negotiation = await self._load(db, negotiation_id)

            logger.info(
                f"✅ Negotiation {negotiation_id} accepted by {role} at {final_price}: "
                f"order {order.order_number} total {order.total_amount}"
            )

            self.rooms.publish(negotiation_id, DEAL_ACCEPTED_EVENT, {
                "negotiation_id": negotiation_id,
                "sender": role,
                "message": message or "",
                "final_price": str(final_price),
                "order": OrderResponse.model_validate(order).model_dump(mode="json"),
                "timestamp": datetime.utcnow().isoformat(),
            })

        return negotiation, order

    async def close_negotiation(self, db: AsyncSession, negotiation_id: str, requester_id: str) -> Negotiation:
        """
        Close a negotiation without a deal.

        Raises:
            NotFoundError: Negotiation does not exist
            ForbiddenError: Requester is not a participant
            AlreadyClosedError: Negotiation is already inactive
        """
        async with self.rooms.ordered(negotiation_id):
            negotiation = await self._load(db, negotiation_id)

            role = negotiation.role_of(requester_id)
            if role is None:
                raise ForbiddenError("Not authorized - you are not a participant in this negotiation")

            claimed = await db.execute(
                update(Negotiation)
                .where(Negotiation.id == negotiation_id, Negotiation.is_active.is_(True))
                .values(is_active=False, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await db.rollback()
                await self._raise_already_closed(db, negotiation_id)

            await db.commit()
            negotiation = await self._load(db, negotiation_id)

            logger.info(f"Negotiation {negotiation_id} closed by {role} without a deal")

            self.rooms.publish(negotiation_id, CLOSED_EVENT, {
                "negotiation_id": negotiation_id,
                "closed_by": role,
                "timestamp": datetime.utcnow().isoformat(),
            })

        return negotiation


# Global service instance
negotiation_service = NegotiationSessionService()
