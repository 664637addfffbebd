from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from mwss.core.enums import TransactionCategory, TransactionStatus


class TransactionCreate(BaseModel):
    """Public payment submission. The transaction reference (UTR) must be unique."""

    category: TransactionCategory
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_reference: str = Field(..., min_length=1, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=50)
    purpose: Optional[str] = Field(None, max_length=2000)
    father_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=2000)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=20)
    membership_level: Optional[str] = Field(None, max_length=50)

    @field_validator("transaction_reference", "name", "phone")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class TransactionSubmitted(BaseModel):
    success: bool = True
    message: str
    id: UUID
    status: str


class TransactionStatusCheck(BaseModel):
    status: str
    category: str
    amount: Decimal


class TransactionDecision(BaseModel):
    """Admin decision: approved or rejected."""

    status: TransactionStatus
    admin_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def must_be_decision(cls, value: TransactionStatus) -> TransactionStatus:
        if value == TransactionStatus.PENDING:
            raise ValueError("status must be approved or rejected")
        return value


class TransactionResponse(BaseModel):
    id: UUID
    category: str
    name: str
    email: Optional[str] = None
    phone: str
    amount: Decimal
    transaction_reference: str
    payment_method: Optional[str] = None
    purpose: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    membership_level: Optional[str] = None
    status: str
    member_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    admin_notes: Optional[str] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MembershipProvisioned(BaseModel):
    member_id: UUID
    membership_number: Optional[str] = None
    member_created: bool
    card_id: UUID
    card_number: str
    valid_from: date
    valid_until: date
    card_created: bool


class TransactionDecisionResponse(BaseModel):
    """
    Decision outcome. provisioning_error set means the status change is committed but the
    membership cascade did not complete; POST /transactions/{id}/provision retries it.
    """

    transaction: TransactionResponse
    membership: Optional[MembershipProvisioned] = None
    provisioning_error: Optional[str] = None
