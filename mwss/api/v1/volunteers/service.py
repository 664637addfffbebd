"""Volunteer account administration."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.core.clock import utcnow
from mwss.core.exceptions import NotFoundError
from mwss.core.models import VolunteerAccount
from mwss.db.errors import transient_db_errors
from mwss.notifications.dispatcher import NotificationDispatcher
from mwss.notifications.sinks import NotificationEvent

from .schemas import VolunteerResponse, VolunteerUpdate

logger = logging.getLogger(__name__)


async def list_volunteers(db: AsyncSession) -> List[VolunteerResponse]:
    async with transient_db_errors("listing volunteers"):
        result = await db.execute(select(VolunteerAccount).order_by(VolunteerAccount.created_at.desc()))
    return [VolunteerResponse.model_validate(v) for v in result.scalars().all()]


async def update_volunteer(
    db: AsyncSession,
    volunteer_id: UUID,
    payload: VolunteerUpdate,
    approver_id: UUID,
    dispatcher: NotificationDispatcher,
) -> VolunteerResponse:
    async with transient_db_errors("loading volunteer"):
        volunteer = await db.get(VolunteerAccount, volunteer_id, populate_existing=True)
    if not volunteer:
        raise NotFoundError("Volunteer account not found")

    newly_approved = payload.is_approved is True and not volunteer.is_approved
    if payload.is_approved is not None:
        volunteer.is_approved = payload.is_approved
    if payload.is_active is not None:
        volunteer.is_active = payload.is_active
    if newly_approved:
        volunteer.approved_by = approver_id
        volunteer.approved_at = utcnow()
    async with transient_db_errors("updating volunteer"):
        await db.commit()
        await db.refresh(volunteer)

    if newly_approved:
        logger.info("Volunteer %s approved by %s", volunteer.id, approver_id)
        dispatcher.notify(
            NotificationEvent.VOLUNTEER_APPROVED,
            volunteer.email,
            {
                "name": volunteer.full_name,
                "email": volunteer.email,
                "phone": volunteer.phone or "N/A",
            },
        )
    return VolunteerResponse.model_validate(volunteer)
