"""Student administration: listing and fee settlement."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.core.clock import utcnow
from mwss.core.exceptions import NotFoundError
from mwss.core.models import PaymentTransaction, Student
from mwss.db.errors import transient_db_errors

from .schemas import StudentPaymentRecord, StudentResponse

logger = logging.getLogger(__name__)


async def get_student_by_email(db: AsyncSession, email: str) -> Optional[Student]:
    result = await db.execute(select(Student).where(Student.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def list_students(db: AsyncSession) -> List[StudentResponse]:
    async with transient_db_errors("listing students"):
        result = await db.execute(select(Student).order_by(Student.registration_date.desc()))
    return [StudentResponse.model_validate(s) for s in result.scalars().all()]


async def _get_student_or_404(db: AsyncSession, student_id: UUID) -> Student:
    async with transient_db_errors("loading student"):
        student = await db.get(Student, student_id, populate_existing=True)
    if not student:
        raise NotFoundError("Student not found")
    return student


async def get_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    return StudentResponse.model_validate(await _get_student_or_404(db, student_id))


async def record_payment(
    db: AsyncSession,
    student_id: UUID,
    payload: StudentPaymentRecord,
) -> StudentResponse:
    student = await _get_student_or_404(db, student_id)
    student.fee_paid = True
    if payload.amount is not None:
        student.fee_amount = payload.amount
    student.payment_date = payload.payment_date or utcnow()
    async with transient_db_errors("recording student payment"):
        await db.commit()
        await db.refresh(student)
    logger.info("Fee payment recorded for student %s", student.registration_number)
    return StudentResponse.model_validate(student)


async def settle_fee_payment(
    db: AsyncSession,
    email: str,
    transaction_id: UUID,
    paid_at: datetime,
) -> Optional[UUID]:
    """
    Mark the student registered under email as paid and link the fee transaction to them.

    Returns the student id, or None when no student uses that email. Safe to repeat:
    an existing payment_date and an existing transaction link are kept.
    """
    student = await get_student_by_email(db, email)
    if student is None:
        return None
    student_id = student.id
    if not student.fee_paid:
        student.fee_paid = True
        student.payment_date = paid_at
    await db.execute(
        update(PaymentTransaction)
        .where(PaymentTransaction.id == transaction_id, PaymentTransaction.student_id.is_(None))
        .values(student_id=student_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Fee transaction %s settled for student %s", transaction_id, student.registration_number)
    return student_id
