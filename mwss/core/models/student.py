import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from mwss.core.clock import utcnow
from mwss.core.enums import FeeLevel
from mwss.db.session import Base


class Student(Base):
    """Registered student. Stays is_active with fee_paid false until the fee is settled."""

    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    father_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    class_name = Column(String(50), nullable=False)
    # MWSS<year><seq:4>
    registration_number = Column(String(50), nullable=False, unique=True)
    fee_level = Column(String(20), nullable=False, default=FeeLevel.VILLAGE.value)
    fee_amount = Column(Integer, nullable=False, default=99)
    fee_paid = Column(Boolean, nullable=False, default=False)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    registration_date = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
