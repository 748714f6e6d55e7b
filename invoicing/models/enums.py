"""Enumerations shared by models and schemas"""

import enum

from sqlalchemy import Enum


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH = "cash"
    UPI = "upi"
    OTHER = "other"


class ClientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProfileRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SendMethod(str, enum.Enum):
    EMAIL = "email"
    DOWNLOAD = "download"
    PRINT = "print"


class ReminderType(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


def enum_column(enum_cls) -> Enum:
    """Store enum values (not member names) as plain strings"""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )
