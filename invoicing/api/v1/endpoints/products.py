"""Product catalog endpoints"""

from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, Query
import structlog

from invoicing.api.deps import get_current_business, get_product_service
from invoicing.models.user import User
from invoicing.schemas.common import MessageResponse
from invoicing.schemas.product import (
    ProductCreate,
    ProductEnvelope,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from invoicing.services.product_service import ProductService

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=ProductListResponse)
async def list_products(
    search: Optional[str] = Query(None, description="Search name, SKU or description"),
    active: Optional[bool] = Query(None, description="Only active or only inactive products"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_business),
    product_service: ProductService = Depends(get_product_service),
):
    products, total = await product_service.list_products(
        current_user.id, search=search, active=active, page=page, limit=limit
    )
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        total=total,
        total_pages=ceil(total / limit),
        current_page=page,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    current_user: User = Depends(get_current_business),
    product_service: ProductService = Depends(get_product_service),
):
    product = await product_service.get_product(product_id, current_user.id)
    return ProductResponse.model_validate(product)


@router.post("", response_model=ProductEnvelope, status_code=201)
async def create_product(
    data: ProductCreate,
    current_user: User = Depends(get_current_business),
    product_service: ProductService = Depends(get_product_service),
):
    product = await product_service.create_product(data, current_user.id)
    return ProductEnvelope(message="Product created", product=ProductResponse.model_validate(product))


@router.put("/{product_id}", response_model=ProductEnvelope)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    current_user: User = Depends(get_current_business),
    product_service: ProductService = Depends(get_product_service),
):
    product = await product_service.update_product(product_id, data, current_user.id)
    return ProductEnvelope(message="Product updated", product=ProductResponse.model_validate(product))


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    current_user: User = Depends(get_current_business),
    product_service: ProductService = Depends(get_product_service),
):
    await product_service.delete_product(product_id, current_user.id)
    return MessageResponse(message="Product deleted")
