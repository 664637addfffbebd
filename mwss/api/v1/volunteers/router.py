from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.dependencies import require_admin
from mwss.auth.schemas import CurrentUser
from mwss.core.exceptions import ServiceError
from mwss.db.session import get_db
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher

from .schemas import VolunteerResponse, VolunteerUpdate
from . import service

router = APIRouter(prefix="/api/v1/volunteers", tags=["volunteers"])


@router.get(
    "",
    response_model=List[VolunteerResponse],
    dependencies=[Depends(require_admin)],
)
async def list_volunteers(
    db: AsyncSession = Depends(get_db),
) -> List[VolunteerResponse]:
    try:
        return await service.list_volunteers(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{volunteer_id}",
    response_model=VolunteerResponse,
)
async def update_volunteer(
    volunteer_id: UUID,
    payload: VolunteerUpdate,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: CurrentUser = Depends(require_admin),
) -> VolunteerResponse:
    """Approve or deactivate a volunteer. Approval records the approving admin and notifies the volunteer."""
    try:
        return await service.update_volunteer(db, volunteer_id, payload, current_user.id, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
