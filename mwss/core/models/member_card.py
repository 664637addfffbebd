"""Member identity card. At most one per member; member fields are copied at generation time."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from mwss.core.clock import utcnow
from mwss.db.session import Base


class MemberCard(Base):
    __tablename__ = "member_cards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(
        UUID(as_uuid=True),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    membership_number = Column(String(50), nullable=False)
    member_name = Column(String(255), nullable=False)
    member_email = Column(String(255), nullable=False)
    member_phone = Column(String(50), nullable=False, default="")
    member_city = Column(String(100), nullable=True)
    member_address = Column(Text, nullable=True)
    card_number = Column(String(50), nullable=False, unique=True)
    is_generated = Column(Boolean, nullable=False, default=False)
    valid_from = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    member = relationship("Member", foreign_keys=[member_id])
