from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.schemas import ROLE_ADMIN, ROLE_MEMBER, LoginRequest, LoginResponse, UserInfo
from mwss.auth.security import create_access_token, verify_password
from mwss.core.clock import utcnow
from mwss.core.enums import TransactionCategory, TransactionStatus
from mwss.core.exceptions import AuthenticationError
from mwss.core.models import Admin, Member, PaymentTransaction


def _issue_token(user_id, email: str, role: str) -> str:
    issued_at = utcnow()
    return create_access_token(
        subject={
            "sub": str(user_id),
            "email": email,
            "role": role,
            "iat": int(issued_at.timestamp()),
        }
    )


async def login_admin(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    result = await db.execute(select(Admin).where(func.lower(Admin.email) == payload.email.lower()))
    admin: Optional[Admin] = result.scalar_one_or_none()
    if not admin or not verify_password(payload.password, admin.password_hash):
        raise AuthenticationError()
    if not admin.is_active:
        raise AuthenticationError("Account is deactivated", status.HTTP_403_FORBIDDEN)

    return LoginResponse(
        access_token=_issue_token(admin.id, admin.email, ROLE_ADMIN),
        user=UserInfo(id=admin.id, name=admin.full_name, email=admin.email, role=ROLE_ADMIN),
    )


async def has_approved_membership_payment(db: AsyncSession, email: str) -> bool:
    result = await db.execute(
        select(PaymentTransaction.id).where(
            PaymentTransaction.email == email,
            PaymentTransaction.category == TransactionCategory.MEMBERSHIP.value,
            PaymentTransaction.status == TransactionStatus.APPROVED.value,
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def login_member(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    """Members sign in only once active, verified by an admin and with an approved membership payment."""
    result = await db.execute(select(Member).where(func.lower(Member.email) == payload.email.lower()))
    member: Optional[Member] = result.scalar_one_or_none()
    if not member:
        raise AuthenticationError()
    if not member.is_active:
        raise AuthenticationError("Account is deactivated", status.HTTP_403_FORBIDDEN)
    if not member.is_verified:
        raise AuthenticationError(
            "Account pending admin verification. Please wait for approval.",
            status.HTTP_403_FORBIDDEN,
        )
    if not verify_password(payload.password, member.password_hash):
        raise AuthenticationError()
    if not await has_approved_membership_payment(db, member.email):
        raise AuthenticationError(
            "Payment pending approval. Please wait for admin approval.",
            status.HTTP_403_FORBIDDEN,
        )

    return LoginResponse(
        access_token=_issue_token(member.id, member.email, ROLE_MEMBER),
        user=UserInfo(
            id=member.id,
            name=member.full_name,
            email=member.email,
            role=ROLE_MEMBER,
            membership_number=member.membership_number,
        ),
    )
