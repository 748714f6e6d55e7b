"""Invoice schemas for API requests and responses"""

from typing import Optional, List, Any, Dict
from datetime import datetime, date
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from invoicing.models.enums import InvoiceStatus, PaymentMethod, ReminderType, SendMethod
from invoicing.schemas.common import RequestModel


class LineItemIn(RequestModel):
    description: str = Field(..., min_length=1, description="Item description")
    quantity: Decimal = Field(..., gt=0, description="Item quantity")
    rate: Decimal = Field(..., ge=0, description="Unit rate")
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="Tax rate percentage")


class InvoiceCreate(RequestModel):
    """Schema for creating a new invoice"""
    client_id: str = Field(..., min_length=1, description="Client ID")
    issue_date: date = Field(..., description="Issue date")
    due_date: date = Field(..., description="Due date")
    items: List[LineItemIn] = Field(..., min_length=1, description="Line items")
    discount_amount: Decimal = Field(Decimal("0"), ge=0, description="Flat discount")
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)
    template: Optional[str] = Field(None, max_length=50)


class InvoiceUpdate(RequestModel):
    """Allow-listed partial update; anything else in the payload is rejected"""

    model_config = ConfigDict(extra="forbid")

    client_id: Optional[str] = Field(None, min_length=1)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    items: Optional[List[LineItemIn]] = Field(None, min_length=1)
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)
    internal_notes: Optional[str] = Field(None, max_length=1000)
    template: Optional[str] = Field(None, max_length=50)
    # Immutable; accepted only when unchanged
    invoice_number: Optional[str] = None
    user_id: Optional[str] = None


class SendInvoiceRequest(RequestModel):
    sent_to: Optional[str] = Field(None, max_length=255)
    method: SendMethod = SendMethod.EMAIL


class ReminderCreate(RequestModel):
    type: ReminderType = ReminderType.MANUAL


class PaymentCreate(RequestModel):
    """Schema for recording a payment against an invoice"""
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Payment amount")
    payment_date: Optional[date] = Field(None, description="Payment date, defaults to today")
    payment_method: Optional[str] = Field(None, max_length=50, description="Payment method")
    transaction_id: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class LineItemResponse(BaseModel):
    description: str
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal
    amount: Decimal
    tax_amount: Decimal


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class SentRecord(BaseModel):
    sent_date: datetime
    sent_to: Optional[str] = None
    method: SendMethod


class ReminderRecord(BaseModel):
    type: ReminderType
    sent_date: datetime
    days_overdue: int


class InvoiceResponse(BaseModel):
    """Schema for invoice response"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    client_id: str
    invoice_number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date
    payment_terms: Optional[str] = None
    items: List[LineItemResponse]
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    currency: str
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    template: Optional[str] = None
    payment_history: List[PaymentResponse] = Field(default_factory=list, validation_alias="payments")
    sent_history: List[SentRecord] = Field(default_factory=list)
    reminders: List[ReminderRecord] = Field(default_factory=list)
    viewed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class InvoiceEnvelope(BaseModel):
    message: str
    invoice: InvoiceResponse


class ClientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    tax_id: Optional[str] = None


class BusinessSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    business_name: Optional[str] = None
    business_address: Optional[Dict[str, Any]] = None
    business_phone: Optional[str] = None
    business_email: Optional[str] = None
    tax_id: Optional[str] = None


class InvoiceDocument(BaseModel):
    """Read-side projection of an invoice with its client and issuing business"""
    invoice: InvoiceResponse
    client: Optional[ClientSummary] = None
    business: Optional[BusinessSummary] = None


class InvoiceListItem(InvoiceResponse):
    client: Optional[ClientSummary] = None


class InvoiceListResponse(BaseModel):
    """Schema for invoice list response"""
    invoices: List[InvoiceListItem]
    total: int
    total_pages: int
    current_page: int


class InvoiceStats(BaseModel):
    total: int = 0
    draft: int = 0
    sent: int = 0
    viewed: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")
