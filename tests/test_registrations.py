import re

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.core.clock import utcnow
from mwss.core.models import Student, VolunteerAccount
from mwss.notifications.dispatcher import NotificationDispatcher
from mwss.notifications.sinks import NotificationEvent


def _student_payload(email: str, **overrides) -> dict:
    payload = {
        "email": email,
        "password": "StudentPass123",
        "full_name": "Ravi Kumar",
        "father_name": "Suresh Kumar",
        "phone": "9811111111",
        "class_name": "10",
        "fee_level": "district",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_register_student_assigns_year_scoped_number(
    client: AsyncClient,
    db_session: AsyncSession,
    dispatcher: NotificationDispatcher,
    sink,
) -> None:
    year = utcnow().year

    first = await client.post("/api/v1/registrations/students", json=_student_payload("ravi@example.com"))
    second = await client.post("/api/v1/registrations/students", json=_student_payload("Asha@Example.com"))

    assert first.status_code == 201, first.text
    assert second.status_code == 201
    assert first.json()["registration_number"] == f"MWSS{year}0001"
    assert second.json()["registration_number"] == f"MWSS{year}0002"
    assert first.json()["fee_amount"] == 299

    student = (await db_session.execute(select(Student).where(Student.email == "asha@example.com"))).scalar_one()
    assert student.is_active is True
    assert student.fee_paid is False

    await dispatcher.drain()
    registered = [n for n in sink.sent if n.event_type == NotificationEvent.STUDENT_REGISTERED]
    assert {n.recipient for n in registered} == {"ravi@example.com", "asha@example.com", "admin"}


@pytest.mark.asyncio
async def test_register_student_defaults_to_village_fee(client: AsyncClient) -> None:
    payload = _student_payload("village@example.com")
    del payload["fee_level"]
    response = await client.post("/api/v1/registrations/students", json=payload)
    assert response.status_code == 201
    assert response.json()["fee_amount"] == 99


@pytest.mark.asyncio
async def test_register_student_rejects_taken_email(client: AsyncClient) -> None:
    assert (await client.post("/api/v1/registrations/students", json=_student_payload("dup@example.com"))).status_code == 201

    response = await client.post("/api/v1/registrations/students", json=_student_payload("dup@example.com"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_member_gets_self_registered_number(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/registrations/members",
        json={
            "email": "mb@example.com",
            "password": "MemberPass123",
            "full_name": "Meena",
            "phone": "9822222222",
        },
    )
    assert response.status_code == 201, response.text
    assert re.match(r"^MWSS-MB\d{5}$", response.json()["membership_number"])


@pytest.mark.asyncio
async def test_register_volunteer(client: AsyncClient, db_session: AsyncSession) -> None:
    payload = {
        "email": "vol@example.com",
        "password": "VolunteerPass1",
        "full_name": "Vikas",
        "phone": "9833333333",
        "occupation": "Teacher",
    }
    response = await client.post("/api/v1/registrations/volunteers", json=payload)
    assert response.status_code == 201

    volunteer = (await db_session.execute(select(VolunteerAccount))).scalar_one()
    assert volunteer.is_approved is False
    assert volunteer.password_hash != payload["password"]

    again = await client.post("/api/v1/registrations/volunteers", json=payload)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_registration_validates_input(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/registrations/students",
        json=_student_payload("short@example.com", password="short"),
    )
    assert response.status_code == 422
