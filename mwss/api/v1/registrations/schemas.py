from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from mwss.core.enums import FeeLevel


class _AccountRegistration(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class StudentRegistration(_AccountRegistration):
    phone: Optional[str] = Field(None, max_length=50)
    father_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=2000)
    city: Optional[str] = Field(None, max_length=100)
    class_name: str = Field(..., min_length=1, max_length=50, description="Class the student registers for")
    fee_level: FeeLevel = FeeLevel.VILLAGE


class StudentRegistered(BaseModel):
    success: bool = True
    id: UUID
    registration_number: str
    fee_amount: int


class MemberRegistration(_AccountRegistration):
    phone: str = Field(..., min_length=1, max_length=50)
    city: Optional[str] = Field("Haryana", max_length=100)
    address: Optional[str] = Field(None, max_length=2000)


class MemberRegistered(BaseModel):
    success: bool = True
    id: UUID
    membership_number: str


class VolunteerRegistration(_AccountRegistration):
    phone: str = Field(..., min_length=1, max_length=50)
    city: Optional[str] = Field(None, max_length=100)
    occupation: Optional[str] = Field(None, max_length=255)


class VolunteerRegistered(BaseModel):
    success: bool = True
    id: UUID
