import asyncio
import re
import uuid
from typing import Any, Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.api.v1.transactions import service as transactions_service
from mwss.core.clock import add_years
from mwss.core.exceptions import NotificationError, TransientInfraError
from mwss.core.models import Member, MemberCard, PaymentTransaction
from mwss.main import app
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from mwss.notifications.sinks import NotificationEvent


def _payload(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "category": "membership",
        "name": "New Member",
        "email": "new@x.com",
        "phone": "9876543210",
        "amount": "500",
        "transaction_reference": "TXN-001",
        "payment_method": "upi",
        "city": "Rohtak",
    }
    payload.update(overrides)
    return payload


async def _submit(client: AsyncClient, **overrides: Any) -> str:
    response = await client.post("/api/v1/transactions", json=_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _count(db: AsyncSession, column) -> int:
    return await db.scalar(select(func.count(column)))


@pytest.mark.asyncio
async def test_submit_transaction_is_pending(
    client: AsyncClient,
    dispatcher: NotificationDispatcher,
    sink,
) -> None:
    response = await client.post("/api/v1/transactions", json=_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "pending"
    uuid.UUID(data["id"])

    check = await client.get("/api/v1/transactions/check/TXN-001")
    assert check.status_code == 200
    assert check.json()["status"] == "pending"

    await dispatcher.drain()
    recipients = {n.recipient for n in sink.sent if n.event_type == NotificationEvent.PAYMENT_SUBMITTED}
    assert recipients == {"new@x.com", "admin"}


@pytest.mark.asyncio
async def test_duplicate_reference_is_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    await _submit(client)

    response = await client.post("/api/v1/transactions", json=_payload(name="Someone Else"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Transaction ID already exists"

    count = await db_session.scalar(
        select(func.count(PaymentTransaction.id)).where(PaymentTransaction.transaction_reference == "TXN-001")
    )
    assert count == 1


@pytest.mark.asyncio
async def test_concurrent_duplicate_references_store_one_record(
    client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    responses = await asyncio.gather(
        client.post("/api/v1/transactions", json=_payload()),
        client.post("/api/v1/transactions", json=_payload()),
    )
    assert sorted(r.status_code for r in responses) == [201, 400]
    assert await _count(db_session, PaymentTransaction.id) == 1


@pytest.mark.asyncio
async def test_admin_endpoints_require_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/transactions")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_approve_membership_provisions_member_and_card(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    admin,
    db_session: AsyncSession,
    dispatcher: NotificationDispatcher,
    sink,
) -> None:
    transaction_id = await _submit(client)

    response = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["provisioning_error"] is None
    assert data["transaction"]["status"] == "approved"
    assert data["transaction"]["approved_by"] == str(admin.id)

    membership = data["membership"]
    assert re.match(r"^MWSS-M\d{4,5}$", membership["membership_number"])
    assert re.match(r"^MWSS-CARD-\d{6}$", membership["card_number"])

    member = (await db_session.execute(select(Member).where(Member.email == "new@x.com"))).scalar_one()
    card = (await db_session.execute(select(MemberCard).where(MemberCard.member_id == member.id))).scalar_one()
    assert member.is_verified is True
    assert member.icard_id == card.id
    assert card.valid_until == add_years(card.valid_from, 1)
    assert data["transaction"]["member_id"] == str(member.id)

    await dispatcher.drain()
    approved = [n for n in sink.sent if n.event_type == NotificationEvent.PAYMENT_APPROVED]
    assert len(approved) == 1
    assert approved[0].details["card_number"] == card.card_number


@pytest.mark.asyncio
async def test_reapproval_conflicts_and_leaves_counts_unchanged(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    transaction_id = await _submit(client)
    first = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert first.status_code == 200

    second = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert second.status_code == 409

    assert await _count(db_session, Member.id) == 1
    assert await _count(db_session, MemberCard.id) == 1


@pytest.mark.asyncio
async def test_concurrent_approval_of_same_transaction(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    transaction_id = await _submit(client)

    responses = await asyncio.gather(*(
        client.patch(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "approved"},
            headers=admin_headers,
        )
        for _ in range(2)
    ))

    assert sorted(r.status_code for r in responses) == [200, 409]
    assert await _count(db_session, Member.id) == 1
    assert await _count(db_session, MemberCard.id) == 1


@pytest.mark.asyncio
async def test_concurrent_approvals_for_same_email_converge(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    first_id = await _submit(client, email="e@x.com", transaction_reference="TXN-A")
    second_id = await _submit(client, email="e@x.com", transaction_reference="TXN-B")

    responses = await asyncio.gather(*(
        client.patch(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "approved"},
            headers=admin_headers,
        )
        for transaction_id in (first_id, second_id)
    ))
    assert [r.status_code for r in responses] == [200, 200]

    member_ids = {r.json()["membership"]["member_id"] for r in responses}
    card_numbers = {r.json()["membership"]["card_number"] for r in responses}
    assert len(member_ids) == 1
    assert len(card_numbers) == 1
    assert await _count(db_session, Member.id) == 1
    assert await _count(db_session, MemberCard.id) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("category", ["membership", "donation"])
async def test_rejection_never_provisions(
    category: str,
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
    dispatcher: NotificationDispatcher,
    sink,
) -> None:
    transaction_id = await _submit(client, category=category)

    response = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "rejected", "admin_notes": "UTR not found"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["transaction"]["status"] == "rejected"
    assert data["transaction"]["admin_notes"] == "UTR not found"
    assert data["membership"] is None

    assert await _count(db_session, Member.id) == 0
    assert await _count(db_session, MemberCard.id) == 0

    await dispatcher.drain()
    assert [n.event_type for n in sink.sent if n.recipient == "new@x.com"][-1] == NotificationEvent.PAYMENT_REJECTED


@pytest.mark.asyncio
async def test_approving_donation_creates_no_member(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    transaction_id = await _submit(client, category="donation")

    response = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["membership"] is None
    assert await _count(db_session, Member.id) == 0


@pytest.mark.asyncio
async def test_pending_is_not_a_decision(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    transaction_id = await _submit(client)
    response = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "pending"},
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_decision_on_unknown_transaction_is_not_found(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    await _submit(client)

    response = await client.patch(
        f"/api/v1/transactions/{uuid.uuid4()}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert response.status_code == 404

    statuses = (await db_session.execute(select(PaymentTransaction.status))).scalars().all()
    assert statuses == ["pending"]
    assert await _count(db_session, Member.id) == 0


@pytest.mark.asyncio
async def test_provisioning_failure_keeps_approval_and_can_be_reconciled(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    transaction_id = await _submit(client)

    async def broken_cascade(db, request):
        raise TransientInfraError("Database unavailable during allocating MWSS-M code, please retry")

    monkeypatch.setattr(transactions_service, "ensure_membership", broken_cascade)
    response = await client.patch(
        f"/api/v1/transactions/{transaction_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["transaction"]["status"] == "approved"
    assert data["membership"] is None
    assert "unavailable" in data["provisioning_error"]
    assert await _count(db_session, Member.id) == 0

    monkeypatch.undo()
    reconciled = await client.post(
        f"/api/v1/transactions/{transaction_id}/provision",
        headers=admin_headers,
    )
    assert reconciled.status_code == 200, reconciled.text
    assert re.match(r"^MWSS-M\d{4}$", reconciled.json()["membership"]["membership_number"])

    again = await client.post(
        f"/api/v1/transactions/{transaction_id}/provision",
        headers=admin_headers,
    )
    assert again.status_code == 200
    assert again.json()["membership"]["member_created"] is False
    assert again.json()["membership"]["card_created"] is False
    assert await _count(db_session, Member.id) == 1
    assert await _count(db_session, MemberCard.id) == 1


@pytest.mark.asyncio
async def test_reconcile_requires_approved_transaction(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    transaction_id = await _submit(client)
    response = await client.post(
        f"/api/v1/transactions/{transaction_id}/provision",
        headers=admin_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_transactions_filters_by_status(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    approved_id = await _submit(client, category="donation", transaction_reference="TXN-1")
    await _submit(client, category="donation", transaction_reference="TXN-2")
    await client.patch(
        f"/api/v1/transactions/{approved_id}",
        json={"status": "approved"},
        headers=admin_headers,
    )

    response = await client.get("/api/v1/transactions", params={"status": "pending"}, headers=admin_headers)
    assert response.status_code == 200
    assert [t["transaction_reference"] for t in response.json()] == ["TXN-2"]


@pytest.mark.asyncio
async def test_failing_notification_sink_does_not_change_decision(
    client: AsyncClient,
    admin_headers: Dict[str, str],
    db_session: AsyncSession,
) -> None:
    class BrokenSink:
        async def send(self, notification) -> None:
            raise NotificationError("webhook down")

    broken = NotificationDispatcher(BrokenSink())
    broken.start()
    app.dependency_overrides[get_dispatcher] = lambda: broken
    try:
        transaction_id = await _submit(client)
        response = await client.patch(
            f"/api/v1/transactions/{transaction_id}",
            json={"status": "approved"},
            headers=admin_headers,
        )
        await broken.drain()
    finally:
        await broken.stop()

    assert response.status_code == 200
    assert response.json()["provisioning_error"] is None
    status = await db_session.scalar(select(PaymentTransaction.status))
    assert status == "approved"
    assert await _count(db_session, MemberCard.id) == 1
