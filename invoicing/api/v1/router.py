"""API v1 main router"""

from fastapi import APIRouter

from invoicing.api.v1.endpoints import (
    auth,
    clients,
    client_portal,
    invoices,
    products,
)

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["auth"]
)

api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["clients"]
)

api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["invoices"]
)

api_router.include_router(
    products.router,
    prefix="/products",
    tags=["products"]
)

api_router.include_router(
    client_portal.router,
    prefix="/client-portal",
    tags=["client-portal"]
)
