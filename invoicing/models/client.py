"""Client model"""

from decimal import Decimal

from sqlalchemy import Column, String, Text, Boolean, JSON, ForeignKey, Numeric, DateTime, Index

from invoicing.db.base import Base, new_id
from invoicing.models.enums import ClientStatus, PaymentMethod, enum_column


class Client(Base):
    """Customer of a business, optionally with client portal access"""

    __tablename__ = "clients"
    __table_args__ = (
        Index("ix_clients_user_email", "user_id", "email"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Contact Information
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50))
    company = Column(String(255))
    address = Column(JSON)
    tax_id = Column(String(15), index=True)
    contact_person = Column(JSON)

    # Terms
    payment_terms = Column(String(50), default="Net 30")
    preferred_payment_method = Column(enum_column(PaymentMethod), default=PaymentMethod.BANK_TRANSFER)
    notes = Column(Text)

    status = Column(enum_column(ClientStatus), default=ClientStatus.ACTIVE, nullable=False, index=True)

    # Portal access
    is_approved = Column(Boolean, default=False, nullable=False)
    approval_token = Column(Text)
    hashed_password = Column(String(255))
    last_login = Column(DateTime(timezone=True))

    # Ledger aggregates, only ever changed through ClientLedger
    total_invoiced = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_paid = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_outstanding = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
