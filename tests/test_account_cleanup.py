import asyncio
import itertools
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mwss.auth.security import random_password_hash
from mwss.core.models import Member, MemberCard, Student, VolunteerAccount
from mwss.jobs import account_cleanup
from mwss.jobs.account_cleanup import retention_cutoff, run_account_cleanup, sweep_expired_accounts


NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
PASSWORD_HASH = random_password_hash()
_registration_numbers = itertools.count(1)


def _student(days_old: int, is_active: bool = True, fee_paid: bool = False) -> Student:
    return Student(
        email=f"student-{uuid.uuid4().hex[:8]}@example.com",
        password_hash=PASSWORD_HASH,
        full_name="Student",
        class_name="8",
        registration_number=f"MWSS2025{next(_registration_numbers):04d}",
        is_active=is_active,
        fee_paid=fee_paid,
        registration_date=NOW - timedelta(days=days_old),
    )


def _member(days_old: int, is_verified: bool = False) -> Member:
    return Member(
        email=f"member-{uuid.uuid4().hex[:8]}@example.com",
        password_hash=PASSWORD_HASH,
        full_name="Member",
        is_verified=is_verified,
        created_at=NOW - timedelta(days=days_old),
    )


def _volunteer(days_old: int, is_approved: bool = False) -> VolunteerAccount:
    return VolunteerAccount(
        email=f"volunteer-{uuid.uuid4().hex[:8]}@example.com",
        password_hash=PASSWORD_HASH,
        full_name="Volunteer",
        phone="9999999999",
        is_approved=is_approved,
        created_at=NOW - timedelta(days=days_old),
    )


async def _emails(db: AsyncSession, model) -> set:
    result = await db.execute(select(model.email))
    return set(result.scalars().all())


def test_default_cutoff_is_one_calendar_month() -> None:
    assert retention_cutoff(datetime(2025, 3, 31, tzinfo=timezone.utc)) == datetime(2025, 2, 28, tzinfo=timezone.utc)
    assert retention_cutoff(NOW, timedelta(days=30)) == NOW - timedelta(days=30)


@pytest.mark.asyncio
async def test_sweep_deletes_only_stale_active_students(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
) -> None:
    stale = _student(40)
    recent = _student(10)
    finalized = _student(40, is_active=False)
    paid = _student(40, fee_paid=True)
    db_session.add_all([stale, recent, finalized, paid])
    await db_session.commit()

    report = await sweep_expired_accounts(session_factory, now=NOW, retention=timedelta(days=30))

    assert report.deleted["student"] == 1
    assert report.failed == []
    assert await _emails(db_session, Student) == {recent.email, finalized.email, paid.email}


@pytest.mark.asyncio
async def test_sweep_keeps_verified_and_carded_members(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
) -> None:
    stale = _member(40)
    verified = _member(40, is_verified=True)
    carded = _member(40)
    db_session.add_all([stale, verified, carded])
    await db_session.commit()
    db_session.add(
        MemberCard(
            member_id=carded.id,
            membership_number="MWSS-M0001",
            member_name="Member",
            member_email=carded.email,
            card_number="MWSS-CARD-000001",
            valid_from=NOW.date(),
            valid_until=NOW.date().replace(year=2026),
        )
    )
    await db_session.commit()

    report = await sweep_expired_accounts(session_factory, now=NOW, retention=timedelta(days=30))

    assert report.deleted["member"] == 1
    assert await _emails(db_session, Member) == {verified.email, carded.email}


@pytest.mark.asyncio
async def test_sweep_keeps_approved_volunteers(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
) -> None:
    stale = _volunteer(45)
    approved = _volunteer(45, is_approved=True)
    recent = _volunteer(3)
    db_session.add_all([stale, approved, recent])
    await db_session.commit()

    report = await sweep_expired_accounts(session_factory, now=NOW)

    assert report.deleted["volunteer"] == 1
    assert report.total_deleted == 1
    assert await _emails(db_session, VolunteerAccount) == {approved.email, recent.email}


@pytest.mark.asyncio
async def test_failed_category_does_not_stop_the_others(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    db_session.add_all([_student(40), _member(40), _volunteer(40)])
    await db_session.commit()

    async def broken(db, cutoff):
        raise RuntimeError("students table locked")

    monkeypatch.setattr(
        account_cleanup,
        "SWEEPS",
        (
            ("student", broken),
            ("member", account_cleanup._sweep_members),
            ("volunteer", account_cleanup._sweep_volunteers),
        ),
    )

    with caplog.at_level(logging.ERROR, logger="mwss.jobs.account_cleanup"):
        report = await sweep_expired_accounts(session_factory, now=NOW, retention=timedelta(days=30))

    assert report.failed == ["student"]
    assert report.deleted == {"member": 1, "volunteer": 1}
    assert "Account cleanup failed for student accounts" in caplog.text
    assert len(await _emails(db_session, Student)) == 1


@pytest.mark.asyncio
async def test_every_pass_logs_a_summary(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
    caplog: pytest.LogCaptureFixture,
) -> None:
    db_session.add(_student(10))
    await db_session.commit()

    with caplog.at_level(logging.INFO, logger="mwss.jobs.account_cleanup"):
        report = await sweep_expired_accounts(session_factory, now=NOW, retention=timedelta(days=30))

    assert report.total_deleted == 0
    summaries = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Account cleanup pass")]
    assert len(summaries) == 1
    assert "'student': 0" in summaries[0]
    assert "failed none" in summaries[0]


@pytest.mark.asyncio
async def test_cleanup_loop_sweeps_immediately_and_stops_on_cancel(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
) -> None:
    # Real clock: one year old is stale under the default cutoff
    stale = _student(0)
    stale.registration_date = datetime.now(timezone.utc) - timedelta(days=365)
    db_session.add(stale)
    await db_session.commit()

    task = asyncio.create_task(run_account_cleanup(session_factory, interval_seconds=3600))
    for _ in range(100):
        if not await _emails(db_session, Student):
            break
        await asyncio.sleep(0.05)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert await _emails(db_session, Student) == set()
