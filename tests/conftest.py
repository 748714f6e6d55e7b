import asyncio
import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

# Settings are read at import time
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("EVENTS_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from invoicing.core.security import get_password_hash
from invoicing.db.session import build_session_factory, get_session_factory, init_db
from invoicing.models import Client, User
from invoicing.schemas.invoice import InvoiceCreate, LineItemIn
from invoicing.services.client_service import ClientService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.numbering import InvoiceNumberingService, NumberingConfig
from invoicing.services.payment_request_service import PaymentRequestService
from invoicing.services.payment_service import PaymentService
from invoicing.services.product_service import ProductService
from invoicing.services.profile_request_service import ProfileRequestService
from invoicing.services.queries import InvoiceQueries

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
ISSUE_DATE = date(2026, 1, 10)
DUE_DATE = date(2026, 2, 10)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'invoicing.db'}", poolclass=NullPool)
    run(init_db(engine))
    yield engine
    run(engine.dispose())


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def services(session_factory):
    """Services wired against the test database with a fixed clock"""
    clock = lambda: NOW  # noqa: E731
    payments = PaymentService(session_factory, max_attempts=3, clock=clock)
    return SimpleNamespace(
        invoices=InvoiceService(
            session_factory,
            InvoiceNumberingService(NumberingConfig(), clock=clock),
            default_currency="INR",
            clock=clock,
        ),
        payments=payments,
        requests=PaymentRequestService(session_factory, payments, clock=clock),
        clients=ClientService(session_factory),
        queries=InvoiceQueries(session_factory),
        products=ProductService(session_factory),
        profiles=ProfileRequestService(session_factory, clock=clock),
    )


@pytest.fixture
def seed(session_factory):
    """Insert a business with one client directly, bypassing the API"""

    async def _seed(email="owner@example.com", client_email="client@example.com", invoice_prefix=None):
        async with session_factory() as session:
            async with session.begin():
                user = User(
                    name="Owner",
                    email=email,
                    hashed_password=get_password_hash("secret123"),
                    business_name="Acme Studio",
                    invoice_prefix=invoice_prefix,
                )
                session.add(user)
                await session.flush()
                client = Client(user_id=user.id, name="Globex", email=client_email)
                session.add(client)
                await session.flush()
                return SimpleNamespace(user_id=user.id, client_id=client.id)

    return lambda **kwargs: run(_seed(**kwargs))


@pytest.fixture
def load_client(session_factory):
    async def _load(client_id):
        async with session_factory() as session:
            return await session.get(Client, client_id)

    return lambda client_id: run(_load(client_id))


def invoice_payload(client_id, items=None, discount="0", **extra):
    items = items or [LineItemIn(description="Design work", quantity=Decimal("2"), rate=Decimal("100"), tax_rate=Decimal("10"))]
    return InvoiceCreate(
        client_id=client_id,
        issue_date=extra.pop("issue_date", ISSUE_DATE),
        due_date=extra.pop("due_date", DUE_DATE),
        items=items,
        discount_amount=Decimal(discount),
        **extra,
    )


@pytest.fixture
def api(session_factory):
    from invoicing.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def business(api):
    """Register a business through the API and return its auth headers"""

    def _register(email="owner@example.com", **extra):
        response = api.post(
            "/api/auth/register",
            json={"name": "Owner", "email": email, "password": "secret123", **extra},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return SimpleNamespace(
            user=body["user"],
            headers={"Authorization": f"Bearer {body['token']}"},
        )

    return _register


@pytest.fixture
def create_client(api):
    def _create(headers, email="client@example.com", **extra):
        response = api.post(
            "/api/clients",
            json={"name": "Globex", "email": email, **extra},
            headers=headers,
        )
        assert response.status_code in (200, 201), response.text
        return response.json()["client"]

    return _create


@pytest.fixture
def create_invoice(api):
    def _create(headers, client_id, items=None, **extra):
        body = {
            "clientId": client_id,
            "issueDate": date.today().isoformat(),
            "dueDate": (date.today() + timedelta(days=30)).isoformat(),
            "items": items or [{"description": "Design work", "quantity": 2, "rate": 100, "taxRate": 10}],
            **extra,
        }
        response = api.post("/api/invoices", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["invoice"]

    return _create
