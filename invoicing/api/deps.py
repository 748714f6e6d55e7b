"""FastAPI dependencies: service wiring and authentication"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import async_sessionmaker

from invoicing.core.config import settings
from invoicing.core.exceptions import AuthenticationError
from invoicing.core.security import business_token_service, client_token_service
from invoicing.db.session import get_session_factory
from invoicing.models.client import Client
from invoicing.models.user import User
from invoicing.services.auth_service import AuthService
from invoicing.services.aws.event_bridge import EventBridgeService, event_bridge_service
from invoicing.services.client_service import ClientService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.numbering import InvoiceNumberingService, NumberingConfig
from invoicing.services.payment_request_service import PaymentRequestService
from invoicing.services.payment_service import PaymentService
from invoicing.services.portal_service import ClientPortalService
from invoicing.services.product_service import ProductService
from invoicing.services.profile_request_service import ProfileRequestService
from invoicing.services.queries import InvoiceQueries

bearer_scheme = HTTPBearer(auto_error=False)


def get_event_bridge() -> EventBridgeService:
    return event_bridge_service


def get_auth_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> AuthService:
    return AuthService(session_factory, business_token_service())


def get_portal_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> ClientPortalService:
    return ClientPortalService(
        session_factory,
        client_token_service(),
        portal_url=settings.CLIENT_PORTAL_URL,
        approval_expiry=timedelta(days=settings.APPROVAL_TOKEN_EXPIRE_DAYS),
    )


def get_client_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> ClientService:
    return ClientService(session_factory)


def get_product_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> ProductService:
    return ProductService(session_factory)


def get_profile_request_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ProfileRequestService:
    return ProfileRequestService(session_factory)


def get_queries(session_factory: async_sessionmaker = Depends(get_session_factory)) -> InvoiceQueries:
    return InvoiceQueries(session_factory)


def get_invoice_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> InvoiceService:
    numbering = InvoiceNumberingService(
        NumberingConfig(
            default_prefix=settings.DEFAULT_INVOICE_PREFIX,
            padding=settings.INVOICE_NUMBER_PADDING,
        )
    )
    return InvoiceService(
        session_factory,
        numbering,
        default_currency=settings.DEFAULT_CURRENCY,
        max_attempts=settings.PAYMENT_MAX_RETRIES,
    )


def get_payment_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> PaymentService:
    return PaymentService(session_factory, max_attempts=settings.PAYMENT_MAX_RETRIES)


def get_payment_request_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    payments: PaymentService = Depends(get_payment_service),
) -> PaymentRequestService:
    return PaymentRequestService(session_factory, payments, max_attempts=settings.PAYMENT_MAX_RETRIES)


async def get_current_business(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Resolve the bearer token to a business user"""
    if credentials is None:
        raise AuthenticationError("No token, authorization denied")
    return await auth_service.authenticate(credentials.credentials)


async def get_current_client(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    portal_service: ClientPortalService = Depends(get_portal_service),
) -> Client:
    """Resolve the bearer token to an approved portal client"""
    if credentials is None:
        raise AuthenticationError("No token, authorization denied")
    return await portal_service.authenticate(credentials.credentials)
