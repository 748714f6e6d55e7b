"""Client-submitted payment request model"""

from sqlalchemy import Column, String, Text, ForeignKey, Date, DateTime, Numeric, Index

from invoicing.db.base import Base, new_id
from invoicing.models.enums import PaymentMethod, PaymentRequestStatus, enum_column


class PaymentRequest(Base):
    """A payment claim awaiting review by the business"""

    __tablename__ = "payment_requests"
    __table_args__ = (
        Index("ix_payment_requests_lookup", "business_user_id", "client_id", "invoice_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    business_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(Date, nullable=False)
    method = Column(enum_column(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    transaction_id = Column(String(255))
    notes = Column(Text)

    status = Column(enum_column(PaymentRequestStatus), default=PaymentRequestStatus.PENDING, nullable=False)
    reviewed_at = Column(DateTime(timezone=True))
    reviewed_by = Column(String(36), ForeignKey("users.id"))
