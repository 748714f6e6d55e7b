"""ORM models; importing this package registers every table on Base.metadata"""

from invoicing.models.enums import (
    ClientStatus,
    InvoiceStatus,
    PaymentMethod,
    PaymentRequestStatus,
    ProfileRequestStatus,
    ReminderType,
    SendMethod,
)
from invoicing.models.user import User
from invoicing.models.client import Client
from invoicing.models.invoice import Invoice, InvoicePayment, INVOICE_NUMBER_CONSTRAINT
from invoicing.models.payment_request import PaymentRequest
from invoicing.models.product import Product
from invoicing.models.profile_request import ProfileRequest

__all__ = [
    "ClientStatus",
    "InvoiceStatus",
    "PaymentMethod",
    "PaymentRequestStatus",
    "ProfileRequestStatus",
    "ReminderType",
    "SendMethod",
    "User",
    "Client",
    "Invoice",
    "InvoicePayment",
    "INVOICE_NUMBER_CONSTRAINT",
    "PaymentRequest",
    "Product",
    "ProfileRequest",
]
