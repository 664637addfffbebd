from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.dependencies import require_admin
from mwss.core.exceptions import ServiceError
from mwss.db.session import get_db

from .schemas import StudentPaymentRecord, StudentResponse
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(require_admin)],
)
async def list_students(
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    try:
        return await service.list_students(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(require_admin)],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.get_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/payment",
    response_model=StudentResponse,
    dependencies=[Depends(require_admin)],
)
async def record_student_payment(
    student_id: UUID,
    payload: StudentPaymentRecord,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Mark the student's fee as paid (cash or other offline collection)."""
    try:
        return await service.record_payment(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
