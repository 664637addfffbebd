"""
Member: created by self-registration or by the provisioning cascade on an approved
membership payment. Owns the reference to its identity card.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID

from mwss.core.clock import utcnow
from mwss.core.enums import MemberStatus
from mwss.db.session import Base


class Member(Base):
    __tablename__ = "members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    membership_type = Column(String(50), nullable=False, default="regular")
    # Assigned once: MWSS-M#### (payment cascade) or MWSS-MB##### (self-registration)
    membership_number = Column(String(50), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=MemberStatus.PENDING.value)
    approval_status = Column(String(20), nullable=False, default=MemberStatus.PENDING.value)
    approved_by = Column(UUID(as_uuid=True), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    membership_start_date = Column(DateTime(timezone=True), nullable=True)
    membership_expiry_date = Column(DateTime(timezone=True), nullable=True)
    terms_accepted = Column(Boolean, nullable=False, default=False)
    terms_accepted_at = Column(DateTime(timezone=True), nullable=True)
    # No FK: the card row references the member, this is a denormalized back-link
    icard_id = Column(UUID(as_uuid=True), nullable=True)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
