"""Read-side projections over invoices, clients and businesses.

All joins between invoices and their client/business live here so route
handlers never assemble related records themselves.
"""

from datetime import date
from math import ceil
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.core.exceptions import NotFoundError
from invoicing.db.session import run_in_transaction
from invoicing.models.client import Client
from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice
from invoicing.models.user import User
from invoicing.repositories.client_repository import ClientRepository
from invoicing.repositories.invoice_repository import InvoiceRepository
from invoicing.schemas.client import ClientStats
from invoicing.schemas.invoice import (
    BusinessSummary,
    ClientSummary,
    InvoiceDocument,
    InvoiceListItem,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStats,
)

PORTAL_STATUSES = (
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
    InvoiceStatus.VIEWED,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.PAID,
)


def build_document(invoice: Invoice, client: Optional[Client], business: Optional[User]) -> InvoiceDocument:
    return InvoiceDocument(
        invoice=InvoiceResponse.model_validate(invoice),
        client=ClientSummary.model_validate(client) if client else None,
        business=BusinessSummary.model_validate(business) if business else None,
    )


def is_overdue(invoice: Invoice, today: date) -> bool:
    if invoice.status == InvoiceStatus.OVERDUE:
        return True
    return (
        invoice.status in (InvoiceStatus.SENT, InvoiceStatus.VIEWED)
        and invoice.due_date < today
        and invoice.remaining_amount > 0
    )


class InvoiceQueries:
    """Assembles response projections; never writes"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def invoice_document(self, invoice_id: str, user_id: str) -> InvoiceDocument:
        """Invoice with its client and issuing business in one round trip"""

        async def work(session: AsyncSession) -> InvoiceDocument:
            result = await session.execute(
                select(Invoice, Client, User)
                .outerjoin(Client, Client.id == Invoice.client_id)
                .outerjoin(User, User.id == Invoice.user_id)
                .where(Invoice.id == invoice_id, Invoice.user_id == user_id)
            )
            row = result.first()
            if row is None:
                raise NotFoundError("Invoice not found", {"invoice_id": invoice_id})
            return build_document(*row)

        return await run_in_transaction(self.session_factory, work, "get_invoice_document")

    async def portal_document(self, invoice: Invoice) -> InvoiceDocument:
        async def work(session: AsyncSession) -> InvoiceDocument:
            client = await session.get(Client, invoice.client_id)
            business = await session.get(User, invoice.user_id)
            return build_document(invoice, client, business)

        return await run_in_transaction(self.session_factory, work, "get_portal_invoice_document")

    async def _with_clients(self, session: AsyncSession, invoices: Sequence[Invoice]) -> List[InvoiceListItem]:
        client_ids = {invoice.client_id for invoice in invoices}
        clients = {}
        if client_ids:
            result = await session.execute(select(Client).where(Client.id.in_(client_ids)))
            clients = {client.id: client for client in result.scalars().all()}

        items = []
        for invoice in invoices:
            item = InvoiceListItem.model_validate(invoice)
            client = clients.get(invoice.client_id)
            item.client = ClientSummary.model_validate(client) if client else None
            items.append(item)
        return items

    async def list_invoices(
        self,
        user_id: str,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> InvoiceListResponse:
        async def work(session: AsyncSession) -> InvoiceListResponse:
            invoices, total = await InvoiceRepository(session).list_for_business(
                user_id,
                status=status,
                client_id=client_id,
                search=search,
                sort_by=sort_by,
                sort_order=sort_order,
                skip=(page - 1) * limit,
                limit=limit,
            )
            return InvoiceListResponse(
                invoices=await self._with_clients(session, invoices),
                total=total,
                total_pages=ceil(total / limit) if limit else 0,
                current_page=page,
            )

        return await run_in_transaction(self.session_factory, work, "list_invoices")

    async def portal_invoices(self, client: Client, client_ids: Sequence[str]) -> List[InvoiceListItem]:
        async def work(session: AsyncSession) -> List[InvoiceListItem]:
            invoices = await InvoiceRepository(session).list_for_clients(
                client.user_id, client_ids, PORTAL_STATUSES
            )
            return await self._with_clients(session, invoices)

        return await run_in_transaction(self.session_factory, work, "list_portal_invoices")

    async def invoice_stats(self, user_id: str, today: Optional[date] = None) -> InvoiceStats:
        today = today or date.today()

        async def work(session: AsyncSession) -> InvoiceStats:
            invoices = await InvoiceRepository(session).all_for_business(user_id)
            stats = InvoiceStats(total=len(invoices))
            for invoice in invoices:
                setattr(stats, invoice.status.value, getattr(stats, invoice.status.value) + 1)
                if invoice.status == InvoiceStatus.CANCELLED:
                    continue
                stats.total_amount += invoice.total_amount
                stats.paid_amount += invoice.paid_amount
                stats.outstanding_amount += invoice.remaining_amount
                if is_overdue(invoice, today):
                    stats.overdue_amount += invoice.remaining_amount
            return stats

        return await run_in_transaction(self.session_factory, work, "invoice_stats")

    async def client_stats(self, client_id: str, user_id: str, today: Optional[date] = None) -> ClientStats:
        """Figures computed from the client's invoices, not from the stored ledger"""
        today = today or date.today()

        async def work(session: AsyncSession) -> ClientStats:
            if not await ClientRepository(session).get_for_business(client_id, user_id):
                raise NotFoundError("Client not found", {"client_id": client_id})

            invoices = await InvoiceRepository(session).all_for_business(user_id, client_id=client_id)
            stats = ClientStats(total_invoices=len(invoices))
            for invoice in invoices:
                key = invoice.status.value
                stats.status_breakdown[key] = stats.status_breakdown.get(key, 0) + 1
                stats.total_invoiced += invoice.total_amount
                stats.total_paid += invoice.paid_amount
                stats.total_outstanding += invoice.remaining_amount
                if is_overdue(invoice, today):
                    stats.overdue_amount += invoice.remaining_amount
            return stats

        return await run_in_transaction(self.session_factory, work, "client_stats")
