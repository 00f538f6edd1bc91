"""Tests for the negotiation WebSocket."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tradeflow.main import app
from tradeflow.database import Base, get_db, get_session_factory
from tradeflow.models.product import Product

BUYER_ID = "buyer-1"
VENDOR_ID = "vendor-1"


def principal_headers(user_id: str, role: str) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
def live_app(tmp_path):
    """
    Synchronous TestClient over a fresh database with one product.

    Returns:
        Tuple of (client, product_id)
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def setup() -> str:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            item = Product(vendor_id=VENDOR_ID, name="Pallet Jack", price=Decimal("1000.00"), min_order_quantity=5)
            session.add(item)
            await session.commit()
            return item.id

    product_id = asyncio.run(setup())

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: factory

    # One portal (one event loop) shared by every request and socket
    with TestClient(app) as client:
        yield client, product_id

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def open_negotiation(client: TestClient, product_id: str) -> str:
    response = client.post(
        "/api/negotiations",
        headers=principal_headers(BUYER_ID, "buyer"),
        json={"product_id": product_id, "initial_offer": "900.00"}
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_socket_requires_identity(live_app):
    client, _ = live_app

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/ws") as ws:
            ws.receive_json()


def test_room_message_and_deal_flow(live_app):
    """Test joining, live counter-offers and deal acceptance over the socket."""
    client, product_id = live_app
    negotiation_id = open_negotiation(client, product_id)

    with client.websocket_connect("/api/ws", headers=principal_headers(BUYER_ID, "buyer")) as buyer_ws, \
            client.websocket_connect(f"/api/ws?user_id={VENDOR_ID}&role=vendor") as vendor_ws:

        buyer_ws.send_json({"event": "joinNegotiationRoom", "data": negotiation_id})
        assert buyer_ws.receive_json() == {"event": "room:joined", "data": {"negotiation_id": negotiation_id}}

        vendor_ws.send_json({"event": "joinNegotiationRoom", "data": {"negotiation_id": negotiation_id}})
        assert vendor_ws.receive_json()["event"] == "room:joined"

        vendor_ws.send_json({
            "event": "negotiation:message",
            "data": {"negotiation_id": negotiation_id, "sender": "vendor", "message": "950 is my best", "offer": "950.00"},
        })

        for ws in (buyer_ws, vendor_ws):
            frame = ws.receive_json()
            assert frame["event"] == "negotiation:message"
            assert frame["data"]["sender"] == "vendor"
            assert frame["data"]["offer"] == "950.00"
            assert frame["data"]["sequence"] == 2
            assert frame["data"]["timestamp"]

        buyer_ws.send_json({"event": "accept-deal", "data": {"negotiation_id": negotiation_id, "message": "Deal"}})

        for ws in (buyer_ws, vendor_ws):
            frame = ws.receive_json()
            assert frame["event"] == "deal:accepted"
            assert frame["data"]["sender"] == "buyer"
            assert frame["data"]["message"] == "Deal"
            assert frame["data"]["order"]["total_amount"] == "4750.00"

        # Accepting again is reported to the sender only
        vendor_ws.send_json({"event": "accept-deal", "data": {"negotiation_id": negotiation_id}})
        error = vendor_ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "ALREADY_CLOSED"

    state = client.get(f"/api/negotiations/{negotiation_id}", headers=principal_headers(BUYER_ID, "buyer")).json()
    assert state["is_accepted"] is True
    assert state["final_price"] == "950.00"


def test_outsider_cannot_join_or_post(live_app):
    client, product_id = live_app
    negotiation_id = open_negotiation(client, product_id)

    with client.websocket_connect("/api/ws", headers=principal_headers("buyer-2", "buyer")) as ws:
        ws.send_json({"event": "joinNegotiationRoom", "data": negotiation_id})
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"code": "FORBIDDEN", "message": "Not authorized to view this negotiation"}}

        ws.send_json({"event": "negotiation:message", "data": {"negotiation_id": negotiation_id, "message": "hi"}})
        assert ws.receive_json()["data"]["code"] == "FORBIDDEN"


def test_invalid_frames_get_error_replies(live_app):
    client, product_id = live_app
    negotiation_id = open_negotiation(client, product_id)

    with client.websocket_connect("/api/ws", headers=principal_headers(BUYER_ID, "buyer")) as ws:
        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "INVALID_FRAME"

        ws.send_json({"event": "teleport", "data": {}})
        assert ws.receive_json()["data"]["code"] == "UNKNOWN_EVENT"

        ws.send_json({"event": "negotiation:message", "data": {"negotiation_id": negotiation_id, "offer": "-3"}})
        assert ws.receive_json()["data"]["code"] == "VALIDATION_ERROR"

        ws.send_json({"event": "negotiation:message", "data": {"negotiation_id": negotiation_id, "sender": "vendor", "message": "spoof"}})
        assert ws.receive_json()["data"]["code"] == "FORBIDDEN"
