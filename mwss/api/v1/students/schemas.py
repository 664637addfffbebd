from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StudentResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: Optional[str] = None
    father_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    class_name: str
    registration_number: str
    fee_level: str
    fee_amount: int
    fee_paid: bool
    payment_date: Optional[datetime] = None
    is_active: bool
    registration_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class StudentPaymentRecord(BaseModel):
    """Fee collected outside the payment flow. payment_date defaults to now."""

    amount: Optional[int] = Field(None, gt=0)
    payment_date: Optional[datetime] = None
