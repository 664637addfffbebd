from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.core.exceptions import ServiceError
from mwss.db.session import get_db
from mwss.notifications.dispatcher import NotificationDispatcher, get_dispatcher

from .schemas import (
    MemberRegistered,
    MemberRegistration,
    StudentRegistered,
    StudentRegistration,
    VolunteerRegistered,
    VolunteerRegistration,
)
from . import service

router = APIRouter(prefix="/api/v1/registrations", tags=["registrations"])


@router.post(
    "/students",
    response_model=StudentRegistered,
    status_code=status.HTTP_201_CREATED,
)
async def register_student(
    payload: StudentRegistration,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> StudentRegistered:
    """Register a student. Registration number is MWSS<year><seq>."""
    try:
        return await service.register_student(db, payload, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/members",
    response_model=MemberRegistered,
    status_code=status.HTTP_201_CREATED,
)
async def register_member(
    payload: MemberRegistration,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MemberRegistered:
    try:
        return await service.register_member(db, payload, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/volunteers",
    response_model=VolunteerRegistered,
    status_code=status.HTTP_201_CREATED,
)
async def register_volunteer(
    payload: VolunteerRegistration,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> VolunteerRegistered:
    try:
        return await service.register_volunteer(db, payload, dispatcher)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
