"""Payment transaction: submitted publicly, decided once by an admin, never deleted."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from mwss.core.clock import utcnow
from mwss.core.enums import TransactionStatus
from mwss.db.session import Base


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    category = Column(String(20), nullable=False)  # donation, membership, fee, other
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # Externally supplied (UTR / bank reference); duplicate submissions are rejected
    transaction_reference = Column(String(100), nullable=False, unique=True)
    payment_method = Column(String(50), nullable=True)
    purpose = Column(Text, nullable=True)
    father_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(20), nullable=True)
    membership_level = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=TransactionStatus.PENDING.value, index=True)
    member_id = Column(UUID(as_uuid=True), ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    admin_notes = Column(Text, nullable=True)
    approved_by = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    member = relationship("Member", foreign_keys=[member_id])
    student = relationship("Student", foreign_keys=[student_id])
