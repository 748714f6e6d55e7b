"""Invoice and payment models"""

from decimal import Decimal

from sqlalchemy import Column, String, Integer, Text, JSON, ForeignKey, Date, DateTime, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from invoicing.db.base import Base, new_id
from invoicing.models.enums import InvoiceStatus, PaymentMethod, enum_column


INVOICE_NUMBER_CONSTRAINT = "uq_invoices_user_invoice_number"


class Invoice(Base):
    """Invoice entity model"""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_number", name=INVOICE_NUMBER_CONSTRAINT),
        Index("ix_invoices_user_status", "user_id", "status"),
        Index("ix_invoices_due_status", "due_date", "status"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)

    # Invoice Details
    invoice_number = Column(String(100), nullable=False)
    status = Column(enum_column(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False)

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_terms = Column(String(50), default="Net 30")

    # Line Items
    items = Column(JSON, nullable=False)  # Array of item objects

    # Financial Information
    subtotal = Column(Numeric(14, 2), nullable=False)
    tax_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    discount_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    remaining_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    currency = Column(String(3), nullable=False)

    # Metadata
    notes = Column(Text)
    internal_notes = Column(Text)
    template = Column(String(50), default="standard")

    # Delivery
    sent_history = Column(JSON, default=list, nullable=False)
    reminders = Column(JSON, default=list, nullable=False)
    viewed_at = Column(DateTime(timezone=True))
    paid_at = Column(DateTime(timezone=True))

    # Optimistic concurrency token
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.sequence",
        lazy="selectin",
    )


class InvoicePayment(Base):
    """Append-only payment history entry"""

    __tablename__ = "invoice_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    amount = Column(Numeric(14, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(enum_column(PaymentMethod), nullable=False)
    transaction_id = Column(String(255))
    notes = Column(Text)

    invoice = relationship("Invoice", back_populates="payments")
