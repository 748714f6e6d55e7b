"""Client schemas for API requests and responses"""

from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from invoicing.models.enums import ClientStatus, PaymentMethod
from invoicing.schemas.common import RequestModel


class Address(RequestModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class ContactPerson(RequestModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None


class ClientCreate(RequestModel):
    """Schema for creating a new client"""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=255)
    address: Optional[Address] = None
    tax_id: Optional[str] = None
    contact_person: Optional[ContactPerson] = None
    payment_terms: Optional[str] = Field(None, max_length=50)
    preferred_payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = Field(None, max_length=500)
    create_credentials: bool = False
    client_password: Optional[str] = Field(None, min_length=6)


class ClientUpdate(RequestModel):
    """Allow-listed client update; ledger totals are never accepted here"""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=255)
    address: Optional[Address] = None
    tax_id: Optional[str] = None
    contact_person: Optional[ContactPerson] = None
    payment_terms: Optional[str] = Field(None, max_length=50)
    preferred_payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = Field(None, max_length=500)
    status: Optional[ClientStatus] = None
    create_credentials: bool = False
    client_password: Optional[str] = Field(None, min_length=6)


class ClientResponse(BaseModel):
    """Schema for client response"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[Dict] = None
    tax_id: Optional[str] = None
    contact_person: Optional[Dict] = None
    payment_terms: Optional[str] = None
    preferred_payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    status: ClientStatus
    is_approved: bool
    last_login: Optional[datetime] = None
    total_invoiced: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    created_at: datetime
    updated_at: datetime


class ClientEnvelope(BaseModel):
    message: str
    client: ClientResponse


class ClientListResponse(BaseModel):
    """Schema for client list response"""
    clients: List[ClientResponse]
    total: int
    total_pages: int
    current_page: int


class ClientStats(BaseModel):
    total_invoices: int = 0
    total_invoiced: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_outstanding: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")
    status_breakdown: Dict[str, int] = Field(default_factory=dict)


class LedgerDrift(BaseModel):
    client_id: str
    recorded_invoiced: Decimal
    actual_invoiced: Decimal
    recorded_paid: Decimal
    actual_paid: Decimal
    recorded_outstanding: Decimal
    actual_outstanding: Decimal


class ReconcileResponse(BaseModel):
    checked: int
    repaired: bool
    drifts: List[LedgerDrift]
