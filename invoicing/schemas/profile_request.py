"""Profile request schemas"""

from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from invoicing.models.enums import ProfileRequestStatus
from invoicing.schemas.client import Address, ClientResponse
from invoicing.schemas.common import RequestModel


class ProfileRequestCreate(RequestModel):
    """Public submission; the target business is named by id or by email"""
    business_user_id: Optional[str] = None
    business_email: Optional[EmailStr] = None
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    company: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[Address] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)


class ProfileRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    business_user_id: str
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict] = None
    tax_id: Optional[str] = None
    notes: Optional[str] = None
    status: ProfileRequestStatus
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    client_id: Optional[str] = None
    created_at: datetime


class ProfileRequestEnvelope(BaseModel):
    message: str
    request: ProfileRequestResponse


class ProfileRequestReviewResponse(BaseModel):
    message: str
    request: ProfileRequestResponse
    client: Optional[ClientResponse] = None


class ProfileRequestListResponse(BaseModel):
    requests: List[ProfileRequestResponse]
