"""
Sequential, prefixed identifiers (registration, membership and card numbers).

- A code is PREFIX + zero-padded counter, e.g. MWSS20250001, MWSS-M0001, MWSS-CARD-000001.
- Each prefix is an independent counter. Only codes with exactly `width` characters after
  the prefix count, so MWSS-M#### and MWSS-MB##### never share a sequence.
- allocate() alone only proposes a candidate. insert_with_code() makes it safe: the owning
  row is committed with the candidate and a uniqueness violation triggers a fresh candidate.
"""

import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from mwss.core.config import settings
from mwss.core.exceptions import ServiceError, TransientInfraError
from mwss.db.errors import transient_db_errors

logger = logging.getLogger(__name__)

T = TypeVar("T")

STUDENT_REGISTRATION_WIDTH = 4
MEMBERSHIP_NUMBER_PREFIX = "MWSS-M"
MEMBERSHIP_NUMBER_WIDTH = 4
SELF_REGISTERED_MEMBERSHIP_PREFIX = "MWSS-MB"
SELF_REGISTERED_MEMBERSHIP_WIDTH = 5
CARD_NUMBER_PREFIX = "MWSS-CARD-"
CARD_NUMBER_WIDTH = 6


def student_registration_prefix(year: int) -> str:
    return f"MWSS{year}"


def format_code(prefix: str, number: int, width: int) -> str:
    if number >= 10 ** width:
        raise ServiceError(
            f"Identifier space exhausted for prefix {prefix}",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return f"{prefix}{number:0{width}d}"


def _like_pattern(prefix: str, width: int) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "_" * width


async def allocate(
    db: AsyncSession,
    column: InstrumentedAttribute,
    prefix: str,
    width: int,
) -> str:
    """
    Next candidate code for prefix: max(count of issued codes, highest issued suffix) + 1.
    The highest suffix keeps candidates ahead of codes left behind by deleted rows.
    """
    stmt = select(func.count(column), func.max(column)).where(
        column.like(_like_pattern(prefix, width), escape="\\")
    )
    count, highest = (await db.execute(stmt)).one()
    highest_number = 0
    if highest:
        suffix = highest[len(prefix):]
        if suffix.isdigit():
            highest_number = int(suffix)
    return format_code(prefix, max(count or 0, highest_number) + 1, width)


async def insert_with_code(
    db: AsyncSession,
    column: InstrumentedAttribute,
    prefix: str,
    width: int,
    build: Callable[[str], T],
    *,
    find_existing: Optional[Callable[[], Awaitable[Optional[T]]]] = None,
    max_attempts: Optional[int] = None,
) -> Tuple[T, bool]:
    """
    Commit a new row carrying a freshly allocated code. Returns (row, created).

    find_existing runs before every attempt; if it returns a row, that row is returned with
    created=False. This gives create-or-fetch semantics when the row's other unique keys
    (email, member_id) lose a race: the retry finds the winner instead of inserting again.
    build must not touch ORM objects that a rollback would expire.
    """
    attempts = max_attempts or settings.identifier_max_attempts
    for attempt in range(1, attempts + 1):
        async with transient_db_errors(f"allocating {prefix} code"):
            if find_existing is not None:
                existing = await find_existing()
                if existing is not None:
                    return existing, False
            code = await allocate(db, column, prefix, width)
            row = build(code)
            db.add(row)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Unique conflict inserting %s (attempt %d/%d), retrying", code, attempt, attempts)
                continue
            await db.refresh(row)
            return row, True
    logger.error("Gave up allocating a %s code after %d attempts", prefix, attempts)
    raise TransientInfraError(f"Could not allocate a unique {prefix} identifier, please retry")
