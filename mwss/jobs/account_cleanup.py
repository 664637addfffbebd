"""
Account cleanup job: deletes signups that stayed unfinished past the retention window.

An account is stale when it is older than the cutoff (default: one calendar month), still
is_active, and shows no sign of having been finalized:
- students: fee not paid
- members: not verified and no identity card issued
- volunteers: not approved

Each category is a single DELETE in its own session; a failure in one category does not
stop the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy import delete, exists
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mwss.core.clock import subtract_months, utcnow
from mwss.core.models import Member, MemberCard, Student, VolunteerAccount

logger = logging.getLogger(__name__)

RETENTION_MONTHS = 1


@dataclass
class SweepReport:
    cutoff: datetime
    deleted: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())


async def _sweep_students(db: AsyncSession, cutoff: datetime) -> int:
    result = await db.execute(
        delete(Student)
        .where(
            Student.registration_date < cutoff,
            Student.is_active.is_(True),
            Student.fee_paid.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def _sweep_members(db: AsyncSession, cutoff: datetime) -> int:
    has_card = exists().where(MemberCard.member_id == Member.id)
    result = await db.execute(
        delete(Member)
        .where(
            Member.created_at < cutoff,
            Member.is_active.is_(True),
            Member.is_verified.is_(False),
            Member.icard_id.is_(None),
            ~has_card,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def _sweep_volunteers(db: AsyncSession, cutoff: datetime) -> int:
    result = await db.execute(
        delete(VolunteerAccount)
        .where(
            VolunteerAccount.created_at < cutoff,
            VolunteerAccount.is_active.is_(True),
            VolunteerAccount.is_approved.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


SWEEPS: Tuple[Tuple[str, Callable[[AsyncSession, datetime], Awaitable[int]]], ...] = (
    ("student", _sweep_students),
    ("member", _sweep_members),
    ("volunteer", _sweep_volunteers),
)


def retention_cutoff(now: datetime, retention: Optional[timedelta] = None) -> datetime:
    if retention is not None:
        return now - retention
    return subtract_months(now, RETENTION_MONTHS)


async def sweep_expired_accounts(
    session_factory: async_sessionmaker,
    now: Optional[datetime] = None,
    retention: Optional[timedelta] = None,
) -> SweepReport:
    """Run one cleanup pass. Never raises; failed categories are listed in the report."""
    report = SweepReport(cutoff=retention_cutoff(now or utcnow(), retention))
    for category, sweep in SWEEPS:
        try:
            async with session_factory() as db:
                count = await sweep(db, report.cutoff)
        except Exception:
            logger.exception("Account cleanup failed for %s accounts", category)
            report.failed.append(category)
            continue
        report.deleted[category] = count
    logger.info(
        "Account cleanup pass (cutoff %s): deleted %s, failed %s",
        report.cutoff.isoformat(),
        report.deleted,
        report.failed or "none",
    )
    return report


async def run_account_cleanup(
    session_factory: async_sessionmaker,
    interval_seconds: int,
) -> None:
    """Sweep now, then every interval, until cancelled."""
    logger.info("Account cleanup job started (runs every %d minutes)", interval_seconds // 60)
    while True:
        try:
            await sweep_expired_accounts(session_factory)
        except Exception:
            logger.exception("Account cleanup pass crashed")
        await asyncio.sleep(interval_seconds)
