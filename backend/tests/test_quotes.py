"""Tests for RFQ, quote submission and quote acceptance endpoints."""

import asyncio
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from tradeflow.models.order import Order
from tradeflow.models.quote import Quote
from tradeflow.services import quote_service


async def submit(client: AsyncClient, rfq_id: str, headers: dict, price: str, quantity: int = 3, **extra):
    return await client.post(
        f"/api/rfqs/{rfq_id}/quotes",
        headers=headers,
        json={"price": price, "quantity": quantity, "delivery_time": "2 weeks", **extra}
    )


@pytest.mark.asyncio
async def test_create_rfq(client: AsyncClient, open_rfq):
    """Test that a buyer can open an RFQ."""
    assert open_rfq["status"] == "open"
    assert open_rfq["buyer_id"] == "buyer-1"
    assert open_rfq["quantity"] == 3


@pytest.mark.asyncio
async def test_create_rfq_requires_buyer(client: AsyncClient, vendor, product):
    """Test that vendors cannot open RFQs."""
    response = await client.post(
        "/api/rfqs",
        headers=vendor,
        json={"title": "Nope", "quantity": 1}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_rfq_rejects_past_deadline(client: AsyncClient, buyer):
    """Test that an RFQ deadline must lie in the future."""
    response = await client.post(
        "/api/rfqs",
        headers=buyer,
        json={"title": "Late", "quantity": 1, "deadline": (datetime.utcnow() - timedelta(days=1)).isoformat()}
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_missing_principal_headers(client: AsyncClient):
    """Test that requests without identity headers are rejected."""
    response = await client.get("/api/rfqs")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_submit_quote_creates_then_updates(client: AsyncClient, vendor, open_rfq, db):
    """Test that resubmitting a quote updates the vendor's existing quote."""
    first = await submit(client, open_rfq["id"], vendor, "12.00")
    assert first.status_code == 201

    second = await submit(client, open_rfq["id"], vendor, "11.50", notes="Best price")
    assert second.status_code == 200

    assert second.json()["id"] == first.json()["id"]
    assert second.json()["price"] == "11.50"
    assert second.json()["notes"] == "Best price"

    count = await db.scalar(select(func.count()).select_from(Quote).where(Quote.rfq_id == open_rfq["id"]))
    assert count == 1


@pytest.mark.asyncio
async def test_concurrent_first_submissions_leave_one_quote(client: AsyncClient, vendor, open_rfq, db):
    """Test that two simultaneous first submissions by one vendor end with a single quote."""
    responses = await asyncio.gather(
        submit(client, open_rfq["id"], vendor, "12.00"),
        submit(client, open_rfq["id"], vendor, "12.25"),
    )

    assert sorted(r.status_code for r in responses) == [200, 201]

    count = await db.scalar(select(func.count()).select_from(Quote).where(Quote.rfq_id == open_rfq["id"]))
    assert count == 1


@pytest.mark.asyncio
async def test_submit_quote_validation(client: AsyncClient, vendor, open_rfq):
    """Test that price and quantity must be positive."""
    response = await submit(client, open_rfq["id"], vendor, "0")
    assert response.status_code == 422

    response = await submit(client, open_rfq["id"], vendor, "10.00", quantity=0)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_submit_quote_unknown_rfq(client: AsyncClient, vendor):
    """Test quoting on an RFQ that does not exist."""
    response = await submit(client, "missing-rfq", vendor, "10.00")
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_buyer_cannot_submit_quote(client: AsyncClient, buyer, open_rfq):
    """Test that only vendors can quote."""
    response = await submit(client, open_rfq["id"], buyer, "10.00")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_quotes_visibility(client: AsyncClient, buyer, other_buyer, vendor, other_vendor, open_rfq):
    """Test that the RFQ owner and vendors can list quotes, other buyers cannot."""
    await submit(client, open_rfq["id"], vendor, "12.00")
    await submit(client, open_rfq["id"], other_vendor, "12.75")

    owner_view = await client.get(f"/api/rfqs/{open_rfq['id']}/quotes", headers=buyer)
    assert owner_view.status_code == 200
    assert len(owner_view.json()) == 2

    vendor_view = await client.get(f"/api/rfqs/{open_rfq['id']}/quotes", headers=other_vendor)
    assert vendor_view.status_code == 200

    stranger_view = await client.get(f"/api/rfqs/{open_rfq['id']}/quotes", headers=other_buyer)
    assert stranger_view.status_code == 403


@pytest.mark.asyncio
async def test_accept_quote_creates_order_and_rejects_siblings(client: AsyncClient, buyer, vendor, other_vendor, open_rfq):
    """Test accepting a quote: single winner, siblings rejected, exact order total."""
    winner = (await submit(client, open_rfq["id"], vendor, "12.50")).json()
    loser = (await submit(client, open_rfq["id"], other_vendor, "13.00")).json()

    response = await client.post(f"/api/quotes/{winner['id']}/accept", headers=buyer)

    assert response.status_code == 200
    data = response.json()

    assert data["quote"]["is_accepted"] is True
    assert data["quote"]["status"] == "accepted"
    assert [q["id"] for q in data["rejected_quotes"]] == [loser["id"]]
    assert data["rejected_quotes"][0]["status"] == "rejected"

    order = data["order"]
    assert order["status"] == "pending"
    assert order["buyer_id"] == "buyer-1"
    assert order["vendor_id"] == "vendor-1"
    assert order["quote_id"] == winner["id"]
    assert order["unit_price"] == "12.50"
    assert order["total_amount"] == "37.50"  # 12.50 x 3, exact
    assert order["order_number"].startswith("ORD-")

    rfq = await client.get(f"/api/rfqs/{open_rfq['id']}", headers=buyer)
    assert rfq.json()["status"] == "accepted"


@pytest.mark.asyncio
async def test_accept_quote_is_idempotent(client: AsyncClient, buyer, vendor, open_rfq, db):
    """Test that accepting twice replays the same settlement without a second order."""
    quote = (await submit(client, open_rfq["id"], vendor, "12.50")).json()

    first = await client.post(f"/api/quotes/{quote['id']}/accept", headers=buyer)
    second = await client.post(f"/api/quotes/{quote['id']}/accept", headers=buyer)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["order"]["id"] == first.json()["order"]["id"]

    count = await db.scalar(select(func.count()).select_from(Order))
    assert count == 1


@pytest.mark.asyncio
async def test_accepting_sibling_after_settlement_replays_winner(client: AsyncClient, buyer, vendor, other_vendor, open_rfq, db):
    """Test that accepting a different quote on a settled RFQ does not create a second winner."""
    winner = (await submit(client, open_rfq["id"], vendor, "12.50")).json()
    loser = (await submit(client, open_rfq["id"], other_vendor, "13.00")).json()

    await client.post(f"/api/quotes/{winner['id']}/accept", headers=buyer)
    response = await client.post(f"/api/quotes/{loser['id']}/accept", headers=buyer)

    assert response.status_code == 200
    assert response.json()["quote"]["id"] == winner["id"]

    accepted = await db.scalar(select(func.count()).select_from(Quote).where(Quote.is_accepted.is_(True)))
    assert accepted == 1


@pytest.mark.asyncio
async def test_concurrent_accepts_have_single_winner(client: AsyncClient, buyer, vendor, other_vendor, open_rfq, db):
    """Test that racing accepts on two quotes of one RFQ settle exactly one of them."""
    first = (await submit(client, open_rfq["id"], vendor, "12.50")).json()
    second = (await submit(client, open_rfq["id"], other_vendor, "13.00")).json()

    responses = await asyncio.gather(
        client.post(f"/api/quotes/{first['id']}/accept", headers=buyer),
        client.post(f"/api/quotes/{second['id']}/accept", headers=buyer),
    )

    assert all(r.status_code == 200 for r in responses)
    winners = {r.json()["quote"]["id"] for r in responses}
    assert len(winners) == 1

    orders = await db.scalar(select(func.count()).select_from(Order))
    accepted = await db.scalar(select(func.count()).select_from(Quote).where(Quote.is_accepted.is_(True)))
    assert orders == 1
    assert accepted == 1


@pytest.mark.asyncio
async def test_accept_quote_forbidden_for_other_buyer(client: AsyncClient, other_buyer, vendor, open_rfq, db):
    """Test that only the RFQ owner can accept, and nothing changes otherwise."""
    quote = (await submit(client, open_rfq["id"], vendor, "12.50")).json()

    response = await client.post(f"/api/quotes/{quote['id']}/accept", headers=other_buyer)

    assert response.status_code == 403
    assert await db.scalar(select(func.count()).select_from(Order)) == 0


@pytest.mark.asyncio
async def test_accept_unknown_quote(client: AsyncClient, buyer):
    response = await client.post("/api/quotes/missing/accept", headers=buyer)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_closed_rfq_rejects_quotes_and_accepts(client: AsyncClient, buyer, vendor, open_rfq):
    """Test that a manually closed RFQ is immutable."""
    quote = (await submit(client, open_rfq["id"], vendor, "12.50")).json()

    closed = await client.post(f"/api/rfqs/{open_rfq['id']}/close", headers=buyer, json={"status": "closed"})
    assert closed.status_code == 200
    assert closed.json()["status"] == "closed"

    resubmit = await submit(client, open_rfq["id"], vendor, "12.00")
    assert resubmit.status_code == 409
    assert resubmit.json()["detail"]["code"] == "INVALID_STATE"

    accept = await client.post(f"/api/quotes/{quote['id']}/accept", headers=buyer)
    assert accept.status_code == 409

    close_again = await client.post(f"/api/rfqs/{open_rfq['id']}/close", headers=buyer, json={"status": "rejected"})
    assert close_again.status_code == 409


@pytest.mark.asyncio
async def test_expired_quote_cannot_be_accepted(client: AsyncClient, buyer, vendor, open_rfq, db):
    """Test that a quote past its validity date is not accepted."""
    quote = (await submit(client, open_rfq["id"], vendor, "12.50")).json()

    stored = await db.get(Quote, quote["id"])
    stored.valid_until = datetime.utcnow() - timedelta(hours=1)
    await db.commit()

    response = await client.post(f"/api/quotes/{quote['id']}/accept", headers=buyer)
    assert response.status_code == 409
    assert response.json()["detail"]["message"] == "Quote has expired"


@pytest.mark.asyncio
async def test_rfq_closed_during_accept_is_invalid_state(client: AsyncClient, buyer, vendor, open_rfq, session_factory, db, monkeypatch):
    """Test that an RFQ closed between the accept's read and its claim reports INVALID_STATE, not ALREADY_ACCEPTED."""
    quote = (await submit(client, open_rfq["id"], vendor, "12.50")).json()
    read_rfq = quote_service.get_rfq

    async def read_then_close(session, rfq_id):
        rfq = await read_rfq(session, rfq_id)
        monkeypatch.setattr(quote_service, "get_rfq", read_rfq)
        async with session_factory() as other:
            await quote_service.close_rfq(other, rfq_id, "buyer-1")
        return rfq

    monkeypatch.setattr(quote_service, "get_rfq", read_then_close)

    response = await client.post(f"/api/quotes/{quote['id']}/accept", headers=buyer)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "INVALID_STATE"
    assert "closed" in response.json()["detail"]["message"]

    stored = await db.get(Quote, quote["id"])
    assert stored.is_accepted is False
    orders = await db.execute(select(func.count()).select_from(Order))
    assert orders.scalar_one() == 0


@pytest.mark.asyncio
async def test_list_rfqs_by_role(client: AsyncClient, buyer, other_buyer, vendor, open_rfq):
    """Test RFQ visibility per role."""
    mine = await client.get("/api/rfqs", headers=buyer)
    assert [r["id"] for r in mine.json()] == [open_rfq["id"]]

    theirs = await client.get("/api/rfqs", headers=other_buyer)
    assert theirs.json() == []

    incoming = await client.get("/api/rfqs", headers=vendor, params={"incoming": "true"})
    assert [r["id"] for r in incoming.json()] == [open_rfq["id"]]
