"""Payment request schemas"""

from typing import Optional, List
import datetime as dt
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from invoicing.models.enums import PaymentMethod, PaymentRequestStatus
from invoicing.schemas.common import RequestModel
from invoicing.schemas.invoice import InvoiceResponse


class PaymentRequestCreate(RequestModel):
    """Payment claim submitted by a client from the portal"""
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Claimed amount")
    date: Optional[dt.date] = Field(None, description="Date the client paid")
    method: PaymentMethod = Field(PaymentMethod.CASH, description="Payment method")
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    invoice_id: str
    business_user_id: str
    client_id: str
    amount: Decimal
    date: dt.date
    method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    status: PaymentRequestStatus
    reviewed_at: Optional[dt.datetime] = None
    reviewed_by: Optional[str] = None
    created_at: dt.datetime
    invoice_number: Optional[str] = None
    client_name: Optional[str] = None


class PaymentRequestEnvelope(BaseModel):
    message: str
    request: PaymentRequestResponse


class PaymentRequestReviewResponse(BaseModel):
    message: str
    request: PaymentRequestResponse
    invoice: Optional[InvoiceResponse] = None


class PaymentRequestListResponse(BaseModel):
    requests: List[PaymentRequestResponse]
