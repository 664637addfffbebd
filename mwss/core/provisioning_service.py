"""
Provisioning cascade for approved membership payments.

ensure_membership() converges to exactly one Member per email and one MemberCard per
member no matter how often, or how concurrently, it runs:
- members.email and member_cards.member_id are unique; a losing insert rolls back and the
  retry fetches the winner's row (create-or-fetch, see identifier_service.insert_with_code).
- existing rows are returned unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.security import random_password_hash
from mwss.core.clock import add_years, utcnow
from mwss.core.enums import MemberStatus
from mwss.core.exceptions import NotFoundError
from mwss.core.identifier_service import (
    CARD_NUMBER_PREFIX,
    CARD_NUMBER_WIDTH,
    MEMBERSHIP_NUMBER_PREFIX,
    MEMBERSHIP_NUMBER_WIDTH,
    insert_with_code,
)
from mwss.core.models import Member, MemberCard
from mwss.db.errors import transient_db_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningRequest:
    """Payer profile taken from an approved membership transaction."""

    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    membership_level: Optional[str] = None
    approved_by: Optional[UUID] = None


@dataclass
class ProvisioningResult:
    member: Member
    card: MemberCard
    member_created: bool
    card_created: bool


async def get_member_by_email(db: AsyncSession, email: str) -> Optional[Member]:
    result = await db.execute(select(Member).where(Member.email == email))
    return result.scalar_one_or_none()


async def get_card_by_member_id(db: AsyncSession, member_id: UUID) -> Optional[MemberCard]:
    result = await db.execute(select(MemberCard).where(MemberCard.member_id == member_id))
    return result.scalar_one_or_none()


async def ensure_member(db: AsyncSession, request: ProvisioningRequest) -> Tuple[Member, bool]:
    """Find the member by email or create an approved, verified one with a new MWSS-M number."""
    email = request.email.strip().lower()
    password_hash = random_password_hash()
    now = utcnow()

    def build(membership_number: str) -> Member:
        return Member(
            email=email,
            password_hash=password_hash,
            full_name=request.name or "Member",
            phone=request.phone or "",
            address=request.address or "",
            city=request.city or "",
            membership_type=request.membership_level or "regular",
            membership_number=membership_number,
            status=MemberStatus.APPROVED.value,
            approval_status=MemberStatus.APPROVED.value,
            is_verified=True,
            is_active=True,
            membership_start_date=now,
            membership_expiry_date=add_years(now, 1),
            terms_accepted=True,
            terms_accepted_at=now,
            approved_by=request.approved_by,
            approved_at=now,
        )

    member, created = await insert_with_code(
        db,
        Member.membership_number,
        MEMBERSHIP_NUMBER_PREFIX,
        MEMBERSHIP_NUMBER_WIDTH,
        build,
        find_existing=lambda: get_member_by_email(db, email),
    )
    if created:
        logger.info("Member %s created from payment for %s", member.membership_number, email)
    return member, created


async def ensure_member_card(db: AsyncSession, member_id: UUID) -> Tuple[MemberCard, bool]:
    """Return the member's card, generating it (valid one year from today) if missing."""
    async with transient_db_errors("loading member"):
        member = await db.get(Member, member_id, populate_existing=True)
    if member is None:
        raise NotFoundError("Member not found")

    # Copied up front: a rollback inside insert_with_code expires the member instance
    membership_number = member.membership_number or ""
    name = member.full_name
    email = member.email
    phone = member.phone or ""
    city = member.city
    address = member.address
    valid_from = utcnow().date()

    def build(card_number: str) -> MemberCard:
        return MemberCard(
            member_id=member_id,
            membership_number=membership_number,
            member_name=name,
            member_email=email,
            member_phone=phone,
            member_city=city,
            member_address=address,
            card_number=card_number,
            is_generated=True,
            valid_from=valid_from,
            valid_until=add_years(valid_from, 1),
        )

    card, created = await insert_with_code(
        db,
        MemberCard.card_number,
        CARD_NUMBER_PREFIX,
        CARD_NUMBER_WIDTH,
        build,
        find_existing=lambda: get_card_by_member_id(db, member_id),
    )
    card_id = card.id
    if created:
        logger.info("Member card %s generated for member %s", card.card_number, member_id)

    # Back-link; also repairs a member left unlinked by an interrupted earlier run
    async with transient_db_errors("linking member card"):
        await db.execute(
            update(Member)
            .where(Member.id == member_id, Member.icard_id.is_(None))
            .values(icard_id=card_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(card)
    return card, created


async def ensure_membership(db: AsyncSession, request: ProvisioningRequest) -> ProvisioningResult:
    member, member_created = await ensure_member(db, request)
    member_id = member.id
    card, card_created = await ensure_member_card(db, member_id)
    async with transient_db_errors("reloading member"):
        await db.refresh(member)
    return ProvisioningResult(
        member=member,
        card=card,
        member_created=member_created,
        card_created=card_created,
    )
