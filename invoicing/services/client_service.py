"""Client management and ledger reconciliation"""

import re
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import ConflictError, NotFoundError, ValidationError
from invoicing.core.security import get_password_hash
from invoicing.db.session import run_in_transaction
from invoicing.models.client import Client
from invoicing.models.enums import ClientStatus, PaymentMethod
from invoicing.repositories.client_repository import ClientRepository
from invoicing.repositories.invoice_repository import InvoiceRepository
from invoicing.schemas.client import ClientCreate, ClientUpdate, LedgerDrift
from invoicing.services.ledger import ClientLedger

logger = structlog.get_logger()

TAX_ID_PATTERN = re.compile(r"^[A-Z0-9]{15}$")

# Fields copied verbatim from a create/update payload
PROFILE_FIELDS = (
    "name", "phone", "company", "address", "contact_person",
    "payment_terms", "preferred_payment_method", "notes",
)


def normalize_tax_id(value: Optional[str]) -> Optional[str]:
    """Upper-case, strip whitespace, require 15 alphanumerics"""
    if value is None:
        return None
    cleaned = re.sub(r"\s+", "", value).upper()
    if not cleaned:
        return None
    if not TAX_ID_PATTERN.match(cleaned):
        raise ValidationError(
            "Tax ID must be 15 alphanumeric characters",
            {"tax_id": value}
        )
    return cleaned


class ClientService:
    """Service for client CRUD; ledger totals are never written from here"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _get_owned(self, session: AsyncSession, client_id: str, user_id: str) -> Client:
        client = await ClientRepository(session).get_for_business(client_id, user_id)
        if not client:
            raise NotFoundError("Client not found", {"client_id": client_id})
        return client

    async def _check_tax_id(self, repo: ClientRepository, tax_id: Optional[str], exclude_id: Optional[str]) -> None:
        if tax_id and await repo.tax_id_in_use(tax_id, exclude_id):
            raise ConflictError("Tax ID already registered to another client", {"tax_id": tax_id})

    def _apply_profile(self, client: Client, fields: dict) -> None:
        for field in PROFILE_FIELDS:
            if field not in fields:
                continue
            value = fields[field]
            if field == "name" and not value:
                continue
            if field == "preferred_payment_method" and value is not None:
                value = PaymentMethod(value)
            setattr(client, field, value)

    def _apply_credentials(self, client: Client, create_credentials: bool, password: Optional[str]) -> None:
        if not create_credentials:
            return
        if not password:
            raise ValidationError("client_password is required when create_credentials is set")
        client.hashed_password = get_password_hash(password)
        client.is_approved = True
        client.approval_token = None

    async def list_clients(
        self,
        user_id: str,
        search: Optional[str] = None,
        status: Optional[str] = ClientStatus.ACTIVE.value,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Client], int]:
        async def work(session: AsyncSession):
            return await ClientRepository(session).search(
                user_id, search=search, status=status, skip=(page - 1) * limit, limit=limit
            )

        return await run_in_transaction(self.session_factory, work, "list_clients")

    async def get_client(self, client_id: str, user_id: str) -> Client:
        async def work(session: AsyncSession) -> Client:
            return await self._get_owned(session, client_id, user_id)

        return await run_in_transaction(self.session_factory, work, "get_client")

    async def create_client(self, data: ClientCreate, user_id: str) -> Tuple[Client, bool]:
        """
        Create a client, or revive the existing record with the same email.

        Returns ``(client, revived)``.
        """
        fields = data.model_dump(exclude_unset=True, exclude={"create_credentials", "client_password"})
        email = data.email.lower()
        tax_id = normalize_tax_id(data.tax_id)

        async def work(session: AsyncSession):
            repo = ClientRepository(session)
            existing = await repo.get_by_email(user_id, email)
            await self._check_tax_id(repo, tax_id, existing.id if existing else None)

            if existing:
                self._apply_profile(existing, fields)
                if "tax_id" in fields:
                    existing.tax_id = tax_id
                existing.status = ClientStatus.ACTIVE
                self._apply_credentials(existing, data.create_credentials, data.client_password)
                await session.flush()
                return existing, True

            client = Client(
                user_id=user_id,
                email=email,
                tax_id=tax_id,
                status=ClientStatus.ACTIVE,
                is_approved=False,
                payment_terms="Net 30",
                preferred_payment_method=PaymentMethod.BANK_TRANSFER,
                phone=None,
                company=None,
                address=None,
                contact_person=None,
                notes=None,
                approval_token=None,
                hashed_password=None,
                last_login=None,
            )
            self._apply_profile(client, fields)
            self._apply_credentials(client, data.create_credentials, data.client_password)
            return await repo.add(client), False

        client, revived = await run_in_transaction(self.session_factory, work, "create_client")
        logger.info("Client saved", client_id=client.id, user_id=user_id, revived=revived)
        return client, revived

    async def update_client(self, client_id: str, data: ClientUpdate, user_id: str) -> Client:
        fields = data.model_dump(exclude_unset=True, exclude={"create_credentials", "client_password"})

        async def work(session: AsyncSession) -> Client:
            repo = ClientRepository(session)
            client = await self._get_owned(session, client_id, user_id)

            if fields.get("email"):
                email = fields["email"].lower()
                if email != client.email and await repo.get_by_email(user_id, email, exclude_id=client.id):
                    raise ConflictError("Another client already uses this email", {"email": email})
                client.email = email

            if "tax_id" in fields:
                tax_id = normalize_tax_id(fields["tax_id"])
                await self._check_tax_id(repo, tax_id, client.id)
                client.tax_id = tax_id

            if fields.get("status"):
                client.status = ClientStatus(fields["status"])

            self._apply_profile(client, fields)
            self._apply_credentials(client, data.create_credentials, data.client_password)
            await session.flush()
            return client

        client = await run_in_transaction(self.session_factory, work, "update_client")
        logger.info("Client updated", client_id=client.id, fields=sorted(fields))
        return client

    async def delete_client(self, client_id: str, user_id: str) -> bool:
        """Deactivate a client with invoices, delete one without. True when deactivated."""

        async def work(session: AsyncSession) -> bool:
            client = await self._get_owned(session, client_id, user_id)
            if await InvoiceRepository(session).count_for_client(client.id):
                client.status = ClientStatus.INACTIVE
                client.is_approved = False
                client.hashed_password = None
                client.approval_token = None
                await session.flush()
                return True
            await ClientRepository(session).delete(client)
            return False

        deactivated = await run_in_transaction(self.session_factory, work, "delete_client")
        logger.info("Client removed", client_id=client_id, deactivated=deactivated)
        return deactivated

    async def remove_credentials(self, client_id: str, user_id: str) -> Client:
        async def work(session: AsyncSession) -> Client:
            client = await self._get_owned(session, client_id, user_id)
            client.hashed_password = None
            client.is_approved = False
            client.approval_token = None
            await session.flush()
            return client

        client = await run_in_transaction(self.session_factory, work, "remove_client_credentials")
        logger.info("Client portal access revoked", client_id=client.id)
        return client

    async def reconcile(self, user_id: str, repair: bool = False) -> Tuple[int, List[LedgerDrift]]:
        """Compare every client ledger of the business against its invoices"""

        async def work(session: AsyncSession):
            checked = len(await ClientRepository(session).list_for_business(user_id))
            drifts = await ClientLedger(session).reconcile(user_id, repair=repair)
            return checked, drifts

        return await run_in_transaction(self.session_factory, work, "reconcile_ledger")
