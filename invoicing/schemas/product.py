"""Product catalog schemas"""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from invoicing.schemas.common import RequestModel

SKU_PATTERN = r"^\d*$"


class ProductCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=64, pattern=SKU_PATTERN, description="Digits only")
    description: Optional[str] = Field(None, max_length=1000)
    rate: Decimal = Field(..., ge=0, description="Unit rate")
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="Tax rate percentage")
    quantity: Decimal = Field(Decimal("0"), ge=0, description="Units in stock")
    unit: Optional[str] = Field(None, min_length=1, max_length=32)
    is_active: bool = True


class ProductUpdate(RequestModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=64, pattern=SKU_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    rate: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    quantity: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1, max_length=32)
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    rate: Decimal
    tax_rate: Decimal
    quantity: Decimal
    unit: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductEnvelope(BaseModel):
    message: str
    product: ProductResponse


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    total: int
    total_pages: int
    current_page: int
