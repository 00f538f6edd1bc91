"""
WebSocket endpoint for live negotiation rooms.

Frames in both directions are JSON objects ``{"event": <name>, "data": <payload>}``.
Clients join a room per negotiation; anything persisted through the socket is
echoed back to the room by the broadcast that follows the commit.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import pydantic
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from tradeflow.api.deps import get_session_factory
from tradeflow.core.events import Subscriber, negotiation_rooms
from tradeflow.core.exceptions import ForbiddenError, MarketplaceError, ValidationError
from tradeflow.core.security import Principal, parse_principal
from tradeflow.schemas.negotiation import NegotiationMessageCreate
from tradeflow.services.negotiation_service import negotiation_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _negotiation_id(data: Any) -> str:
    """Room events carry either the bare id or ``{"negotiation_id": ...}``."""
    if isinstance(data, str) and data:
        return data
    if isinstance(data, dict) and isinstance(data.get("negotiation_id"), str) and data["negotiation_id"]:
        return data["negotiation_id"]
    raise ValidationError("negotiation_id is required")


def _error_frame(code: str, message: str) -> dict:
    return {"event": "error", "data": {"code": code, "message": message}}


async def _pump(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Single writer: forwards room events and direct replies to the socket."""
    try:
        async for event in subscriber.events():
            await websocket.send_json({"event": event["event"], "data": event["data"]})
    except (WebSocketDisconnect, RuntimeError):
        logger.debug(f"{subscriber.name} went away while sending")

    if subscriber.closed:
        # Dropped as a slow consumer; the client has to reconnect and re-join
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)


class NegotiationSocket:
    """Handles the client events of one WebSocket connection."""

    def __init__(self, principal: Principal, subscriber: Subscriber, session_factory: async_sessionmaker):
        self.principal = principal
        self.subscriber = subscriber
        self.session_factory = session_factory

    def reply(self, event: str, data: Any) -> None:
        self.subscriber.offer({"event": event, "data": data})

    async def dispatch(self, frame: Any) -> None:
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            raise ValidationError("Frames must be objects with an 'event' field")

        event = frame["event"]
        data = frame.get("data")

        if event == "joinNegotiationRoom":
            await self.join(data)
        elif event == "leaveNegotiationRoom":
            self.leave(data)
        elif event == "negotiation:message":
            await self.message(data)
        elif event == "accept-deal":
            await self.accept(data)
        else:
            self.reply("error", {"code": "UNKNOWN_EVENT", "message": f"Unknown event '{event}'"})

    async def join(self, data: Any) -> None:
        negotiation_id = _negotiation_id(data)

        async with self.session_factory() as db:
            await negotiation_service.get_negotiation(db, negotiation_id, self.principal)

        negotiation_rooms.join(negotiation_id, self.subscriber)
        self.reply("room:joined", {"negotiation_id": negotiation_id})

    def leave(self, data: Any) -> None:
        negotiation_id = _negotiation_id(data)
        negotiation_rooms.leave(negotiation_id, self.subscriber)
        self.reply("room:left", {"negotiation_id": negotiation_id})

    def _check_sender(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ValidationError("Event data must be an object with negotiation_id")
        sender_id = data.get("sender_id")
        if sender_id is not None and sender_id != self.principal.id:
            raise ForbiddenError("sender_id does not match the authenticated user")

    async def message(self, data: Any) -> None:
        self._check_sender(data)
        negotiation_id = _negotiation_id(data)

        body = NegotiationMessageCreate.model_validate({
            "message": data.get("message") or "",
            "offer": data.get("offer"),
        })

        async with self.session_factory() as db:
            await negotiation_service.post_message(
                db,
                negotiation_id,
                sender_id=self.principal.id,
                message=body.message,
                offer=body.offer,
                sender=data.get("sender"),
            )

    async def accept(self, data: Any) -> None:
        self._check_sender(data)
        negotiation_id = _negotiation_id(data)

        async with self.session_factory() as db:
            negotiation = await negotiation_service.get_negotiation(db, negotiation_id, self.principal)
            sender = data.get("sender")
            if sender is not None and sender != negotiation.role_of(self.principal.id):
                raise ForbiddenError("sender does not match your role in this negotiation")

            await negotiation_service.accept_negotiation(
                db, negotiation_id, self.principal.id, data.get("message")
            )


def _principal_from(websocket: WebSocket) -> Optional[Principal]:
    return parse_principal(
        websocket.headers.get("x-user-id") or websocket.query_params.get("user_id"),
        websocket.headers.get("x-user-role") or websocket.query_params.get("role"),
    )


@router.websocket("/ws")
async def negotiation_socket(
    websocket: WebSocket,
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Live negotiation socket.

    Client events: joinNegotiationRoom, leaveNegotiationRoom,
    negotiation:message, accept-deal. Server events: room:joined, room:left,
    negotiation:message, deal:accepted, negotiation:closed, error.
    """
    principal = _principal_from(websocket)
    if principal is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    subscriber = Subscriber(name=f"ws:{principal.id}")
    handler = NegotiationSocket(principal, subscriber, session_factory)
    sender = asyncio.create_task(_pump(websocket, subscriber))

    logger.info(f"WebSocket connected: {principal.role} {principal.id}")

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                await handler.dispatch(json.loads(raw))
            except json.JSONDecodeError:
                subscriber.offer(_error_frame("INVALID_FRAME", "Frames must be JSON"))
            except pydantic.ValidationError as e:
                subscriber.offer(_error_frame("VALIDATION_ERROR", str(e)))
            except MarketplaceError as e:
                subscriber.offer({"event": "error", "data": e.to_detail()})
            except Exception:
                logger.error(f"Unhandled error on WebSocket for {principal.id}", exc_info=True)
                subscriber.offer(_error_frame("INTERNAL_ERROR", "Internal server error"))

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {principal.role} {principal.id}")
    finally:
        sender.cancel()
        negotiation_rooms.leave_all(subscriber)
        subscriber.close()
