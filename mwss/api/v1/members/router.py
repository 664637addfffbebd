from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.dependencies import require_admin, require_member
from mwss.auth.schemas import CurrentUser
from mwss.core.exceptions import ServiceError
from mwss.db.session import get_db
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher

from .schemas import MemberCardGenerated, MemberCardResponse, MemberResponse, MemberUpdate
from . import service

router = APIRouter(prefix="/api/v1/members", tags=["members"])


# ----- Member self-service (declared before /{member_id} routes) -----

@router.get(
    "/me/card",
    response_model=MemberCardResponse,
)
async def get_my_card(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_member),
) -> MemberCardResponse:
    try:
        return await service.get_member_card(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# ----- Admin -----

@router.get(
    "",
    response_model=List[MemberResponse],
    dependencies=[Depends(require_admin)],
)
async def list_members(
    db: AsyncSession = Depends(get_db),
) -> List[MemberResponse]:
    try:
        return await service.list_members(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{member_id}",
    response_model=MemberResponse,
    dependencies=[Depends(require_admin)],
)
async def get_member(
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MemberResponse:
    try:
        return await service.get_member(db, member_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{member_id}",
    response_model=MemberResponse,
    dependencies=[Depends(require_admin)],
)
async def update_member(
    member_id: UUID,
    payload: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MemberResponse:
    """Verify a member or record admin notes. Verifying notifies the member."""
    try:
        return await service.update_member(db, member_id, payload, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{member_id}/card",
    response_model=MemberCardResponse,
    dependencies=[Depends(require_admin)],
)
async def get_member_card(
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MemberCardResponse:
    try:
        return await service.get_member_card(db, member_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{member_id}/card",
    response_model=MemberCardGenerated,
    dependencies=[Depends(require_admin)],
)
async def generate_member_card(
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MemberCardGenerated:
    """Generate the member's I-Card. Returns the existing card if one was already issued."""
    try:
        return await service.generate_member_card(db, member_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
