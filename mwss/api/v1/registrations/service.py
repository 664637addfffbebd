"""
Self-service signup for students, members and volunteers.

Accounts start is_active with nothing settled; the account cleanup job removes the ones
that never complete payment or approval.
"""

import logging
from typing import Awaitable, Callable, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.security import hash_password
from mwss.core.clock import utcnow
from mwss.core.enums import FEE_AMOUNTS
from mwss.core.exceptions import ValidationError
from mwss.core.identifier_service import (
    SELF_REGISTERED_MEMBERSHIP_PREFIX,
    SELF_REGISTERED_MEMBERSHIP_WIDTH,
    STUDENT_REGISTRATION_WIDTH,
    insert_with_code,
    student_registration_prefix,
)
from mwss.core.models import Member, Student, VolunteerAccount
from mwss.db.errors import transient_db_errors
from mwss.notifications.dispatcher import NotificationDispatcher
from mwss.notifications.sinks import ADMIN_RECIPIENT, NotificationEvent

from .schemas import (
    MemberRegistered,
    MemberRegistration,
    StudentRegistered,
    StudentRegistration,
    VolunteerRegistered,
    VolunteerRegistration,
)

logger = logging.getLogger(__name__)

EMAIL_TAKEN_MESSAGE = "Email already registered"


def _reject_registered_email(
    db: AsyncSession,
    model: Type,
    email: str,
) -> Callable[[], Awaitable[None]]:
    """find_existing hook for insert_with_code: a taken email fails instead of being reused."""

    async def _check() -> None:
        result = await db.execute(select(model.id).where(model.email == email))
        if result.scalar_one_or_none() is not None:
            raise ValidationError(EMAIL_TAKEN_MESSAGE)

    return _check


async def register_student(
    db: AsyncSession,
    payload: StudentRegistration,
    dispatcher: NotificationDispatcher,
) -> StudentRegistered:
    password_hash = hash_password(payload.password)
    fee_amount = FEE_AMOUNTS[payload.fee_level]
    prefix = student_registration_prefix(utcnow().year)

    def build(registration_number: str) -> Student:
        return Student(
            email=payload.email,
            password_hash=password_hash,
            full_name=payload.full_name.strip(),
            phone=payload.phone,
            father_name=payload.father_name,
            address=payload.address,
            city=payload.city,
            class_name=payload.class_name,
            registration_number=registration_number,
            fee_level=payload.fee_level.value,
            fee_amount=fee_amount,
        )

    student, _ = await insert_with_code(
        db,
        Student.registration_number,
        prefix,
        STUDENT_REGISTRATION_WIDTH,
        build,
        find_existing=_reject_registered_email(db, Student, payload.email),
    )
    logger.info("Student %s registered (%s)", student.registration_number, student.email)

    dispatcher.notify(
        NotificationEvent.STUDENT_REGISTERED,
        student.email,
        {
            "name": student.full_name,
            "registration_number": student.registration_number,
            "father_name": student.father_name or "",
            "phone": student.phone or "",
        },
    )
    dispatcher.notify(
        NotificationEvent.STUDENT_REGISTERED,
        ADMIN_RECIPIENT,
        {
            "name": student.full_name,
            "email": student.email,
            "registration_number": student.registration_number,
            "class": student.class_name,
            "fee_level": student.fee_level,
        },
    )
    return StudentRegistered(
        id=student.id,
        registration_number=student.registration_number,
        fee_amount=student.fee_amount,
    )


async def register_member(
    db: AsyncSession,
    payload: MemberRegistration,
    dispatcher: NotificationDispatcher,
) -> MemberRegistered:
    """Self-registered members get an MWSS-MB number and wait for verification."""
    password_hash = hash_password(payload.password)

    def build(membership_number: str) -> Member:
        return Member(
            email=payload.email,
            password_hash=password_hash,
            full_name=payload.full_name.strip(),
            phone=payload.phone,
            city=payload.city,
            address=payload.address or "",
            membership_type="regular",
            membership_number=membership_number,
            is_active=True,
        )

    member, _ = await insert_with_code(
        db,
        Member.membership_number,
        SELF_REGISTERED_MEMBERSHIP_PREFIX,
        SELF_REGISTERED_MEMBERSHIP_WIDTH,
        build,
        find_existing=_reject_registered_email(db, Member, payload.email),
    )
    logger.info("Member %s self-registered (%s)", member.membership_number, member.email)

    dispatcher.notify(
        NotificationEvent.MEMBER_REGISTERED,
        member.email,
        {
            "name": member.full_name,
            "membership_number": member.membership_number,
            "phone": member.phone or "N/A",
        },
    )
    return MemberRegistered(id=member.id, membership_number=member.membership_number)


async def register_volunteer(
    db: AsyncSession,
    payload: VolunteerRegistration,
    dispatcher: NotificationDispatcher,
) -> VolunteerRegistered:
    async with transient_db_errors("registering volunteer"):
        await _reject_registered_email(db, VolunteerAccount, payload.email)()
        volunteer = VolunteerAccount(
            email=payload.email,
            password_hash=hash_password(payload.password),
            full_name=payload.full_name.strip(),
            phone=payload.phone,
            city=payload.city,
            occupation=payload.occupation,
        )
        db.add(volunteer)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationError(EMAIL_TAKEN_MESSAGE)
        await db.refresh(volunteer)
    logger.info("Volunteer %s registered", volunteer.email)

    details = {"name": volunteer.full_name, "email": volunteer.email, "phone": volunteer.phone}
    dispatcher.notify(NotificationEvent.VOLUNTEER_REGISTERED, volunteer.email, details)
    dispatcher.notify(NotificationEvent.VOLUNTEER_REGISTERED, ADMIN_RECIPIENT, details)
    return VolunteerRegistered(id=volunteer.id)
