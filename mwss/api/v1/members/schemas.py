from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MemberResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: str
    address: Optional[str] = None
    city: Optional[str] = None
    membership_type: str
    membership_number: Optional[str] = None
    is_active: bool
    is_verified: bool
    status: str
    approval_status: str
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    membership_start_date: Optional[datetime] = None
    membership_expiry_date: Optional[datetime] = None
    icard_id: Optional[UUID] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MemberUpdate(BaseModel):
    """Admin review of a member."""

    is_verified: Optional[bool] = None
    admin_notes: Optional[str] = Field(None, max_length=2000)


class MemberCardResponse(BaseModel):
    id: UUID
    member_id: UUID
    membership_number: str
    member_name: str
    member_email: str
    member_phone: str
    member_city: Optional[str] = None
    member_address: Optional[str] = None
    card_number: str
    is_generated: bool
    valid_from: date
    valid_until: date
    created_at: datetime

    class Config:
        from_attributes = True


class MemberCardGenerated(BaseModel):
    success: bool = True
    message: str
    created: bool
    card: MemberCardResponse
