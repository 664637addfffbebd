from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: str
    membership_number: Optional[str] = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


class CurrentUser(BaseModel):
    """Authenticated principal resolved from the bearer token."""

    id: UUID
    email: str
    role: str  # admin | member
