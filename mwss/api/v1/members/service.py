"""Member administration and identity-card access."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.core.clock import utcnow
from mwss.core.exceptions import NotFoundError
from mwss.core.models import Member
from mwss.core.provisioning_service import ensure_member_card, get_card_by_member_id
from mwss.db.errors import transient_db_errors
from mwss.notifications.dispatcher import NotificationDispatcher
from mwss.notifications.sinks import NotificationEvent

from .schemas import MemberCardGenerated, MemberCardResponse, MemberResponse, MemberUpdate

logger = logging.getLogger(__name__)

CARD_NOT_GENERATED_MESSAGE = "I-Card not generated yet. Please wait for admin to verify your membership."


async def list_members(db: AsyncSession) -> List[MemberResponse]:
    async with transient_db_errors("listing members"):
        result = await db.execute(select(Member).order_by(Member.created_at.desc()))
    return [MemberResponse.model_validate(m) for m in result.scalars().all()]


async def _get_member_or_404(db: AsyncSession, member_id: UUID) -> Member:
    async with transient_db_errors("loading member"):
        member = await db.get(Member, member_id, populate_existing=True)
    if not member:
        raise NotFoundError("Member not found")
    return member


async def get_member(db: AsyncSession, member_id: UUID) -> MemberResponse:
    return MemberResponse.model_validate(await _get_member_or_404(db, member_id))


async def update_member(
    db: AsyncSession,
    member_id: UUID,
    payload: MemberUpdate,
    dispatcher: NotificationDispatcher,
) -> MemberResponse:
    member = await _get_member_or_404(db, member_id)
    newly_verified = payload.is_verified is True and not member.is_verified
    if payload.is_verified is not None:
        member.is_verified = payload.is_verified
    if payload.admin_notes is not None:
        member.admin_notes = payload.admin_notes
    member.updated_at = utcnow()
    async with transient_db_errors("updating member"):
        await db.commit()
        await db.refresh(member)

    if newly_verified:
        logger.info("Member %s verified", member.membership_number)
        dispatcher.notify(
            NotificationEvent.MEMBER_VERIFIED,
            member.email,
            {
                "name": member.full_name,
                "membership_number": member.membership_number or "N/A",
                "phone": member.phone or "N/A",
            },
        )
    return MemberResponse.model_validate(member)


async def get_member_card(db: AsyncSession, member_id: UUID) -> MemberCardResponse:
    """Card lookup by member id; NotFound until a card has been generated."""
    await _get_member_or_404(db, member_id)
    async with transient_db_errors("loading member card"):
        card = await get_card_by_member_id(db, member_id)
    if not card:
        raise NotFoundError(CARD_NOT_GENERATED_MESSAGE)
    return MemberCardResponse.model_validate(card)


async def generate_member_card(db: AsyncSession, member_id: UUID) -> MemberCardGenerated:
    """Admin-triggered generation; converges with the payment cascade on one card per member."""
    card, created = await ensure_member_card(db, member_id)
    return MemberCardGenerated(
        message="I-Card generated successfully" if created else "I-Card already exists",
        created=created,
        card=MemberCardResponse.model_validate(card),
    )
