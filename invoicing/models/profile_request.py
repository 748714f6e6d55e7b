"""Prospective client profile submitted to a business"""

from sqlalchemy import Column, String, Text, JSON, ForeignKey, DateTime, Index

from invoicing.db.base import Base, new_id
from invoicing.models.enums import ProfileRequestStatus, enum_column


class ProfileRequest(Base):
    """Asks a business to take the submitter on as a client"""

    __tablename__ = "profile_requests"
    __table_args__ = (
        Index("ix_profile_requests_business_status", "business_user_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    business_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(255))
    phone = Column(String(50))
    address = Column(JSON)
    tax_id = Column(String(15))
    notes = Column(Text)

    status = Column(enum_column(ProfileRequestStatus), default=ProfileRequestStatus.PENDING, nullable=False)
    reviewed_at = Column(DateTime(timezone=True))
    reviewed_by = Column(String(36), ForeignKey("users.id"))
    # Client created on approval
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"))
