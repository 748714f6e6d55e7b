"""Authentication schemas for businesses and portal clients"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from invoicing.schemas.client import Address
from invoicing.schemas.common import RequestModel


class RegisterRequest(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    business_name: Optional[str] = Field(None, max_length=255)
    business_address: Optional[Address] = None
    business_phone: Optional[str] = Field(None, max_length=50)
    business_email: Optional[EmailStr] = None
    tax_id: Optional[str] = Field(None, max_length=50)
    invoice_prefix: Optional[str] = Field(None, min_length=1, max_length=20)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class LoginRequest(RequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SettingsUpdate(RequestModel):
    model_config = ConfigDict(extra="forbid")

    invoice_prefix: Optional[str] = Field(None, min_length=1, max_length=20)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms: Optional[str] = Field(None, max_length=50)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    business_name: Optional[str] = None
    business_address: Optional[Dict[str, Any]] = None
    business_phone: Optional[str] = None
    business_email: Optional[str] = None
    tax_id: Optional[str] = None
    invoice_prefix: Optional[str] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None


class TokenResponse(BaseModel):
    message: str
    token: str
    user: UserResponse


class InviteRequest(RequestModel):
    client_id: str = Field(..., min_length=1)


class InviteResponse(BaseModel):
    message: str
    approval_link: str


class ApproveRequest(RequestModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


class PortalClient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    company: Optional[str] = None


class ClientTokenResponse(BaseModel):
    message: str
    token: str
    client: PortalClient


class PortalClientResponse(BaseModel):
    client: PortalClient
