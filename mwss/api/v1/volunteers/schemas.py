from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class VolunteerResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: str
    city: Optional[str] = None
    occupation: Optional[str] = None
    is_active: bool
    is_approved: bool
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VolunteerUpdate(BaseModel):
    """Admin review of a volunteer account."""

    is_approved: Optional[bool] = None
    is_active: Optional[bool] = None
