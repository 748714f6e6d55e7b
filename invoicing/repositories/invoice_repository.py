"""Invoice Repository for database operations"""

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.core.exceptions import ConflictError
from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice, INVOICE_NUMBER_CONSTRAINT
from invoicing.models.payment_request import PaymentRequest

logger = structlog.get_logger()

SORTABLE_FIELDS = {
    "created_at": Invoice.created_at,
    "issue_date": Invoice.issue_date,
    "due_date": Invoice.due_date,
    "total_amount": Invoice.total_amount,
    "invoice_number": Invoice.invoice_number,
    "status": Invoice.status,
}


class InvoiceNumberTaken(ConflictError):
    """The (business, invoice number) pair already exists"""
    def __init__(self, invoice_number: str):
        super().__init__(
            "Invoice number already in use",
            {"invoice_number": invoice_number}
        )


def _is_number_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return INVOICE_NUMBER_CONSTRAINT in message or "invoice_number" in message


class InvoiceRepository:
    """Repository for invoice-related database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, invoice: Invoice) -> Invoice:
        """Insert a new invoice, flushing so number collisions surface here"""
        self.session.add(invoice)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if _is_number_collision(e):
                raise InvoiceNumberTaken(invoice.invoice_number) from e
            raise
        return invoice

    async def get(self, invoice_id: str) -> Optional[Invoice]:
        result = await self.session.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def get_for_business(self, invoice_id: str, user_id: str) -> Optional[Invoice]:
        """Get an invoice only if it belongs to the business"""
        result = await self.session.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_for_clients(self, invoice_id: str, client_ids: Sequence[str]) -> Optional[Invoice]:
        result = await self.session.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.client_id.in_(list(client_ids)))
        )
        return result.scalar_one_or_none()

    async def list_for_business(
        self,
        user_id: str,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[Invoice], int]:
        """List invoices with optional filtering, newest first by default"""
        filters = [Invoice.user_id == user_id]
        if status:
            filters.append(Invoice.status == status)
        if client_id:
            filters.append(Invoice.client_id == client_id)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(Invoice.invoice_number.ilike(pattern), Invoice.notes.ilike(pattern)))

        count_result = await self.session.execute(
            select(func.count()).select_from(Invoice).where(and_(*filters))
        )
        total = count_result.scalar() or 0

        column = SORTABLE_FIELDS.get(sort_by, Invoice.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        result = await self.session.execute(
            select(Invoice).where(and_(*filters)).order_by(ordering, Invoice.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_for_clients(
        self,
        user_id: str,
        client_ids: Sequence[str],
        statuses: Sequence[InvoiceStatus]
    ) -> List[Invoice]:
        result = await self.session.execute(
            select(Invoice)
            .where(
                Invoice.user_id == user_id,
                Invoice.client_id.in_(list(client_ids)),
                Invoice.status.in_(list(statuses)),
            )
            .order_by(Invoice.created_at.desc())
        )
        return list(result.scalars().all())

    async def all_for_business(self, user_id: str, client_id: Optional[str] = None) -> List[Invoice]:
        query = select(Invoice).where(Invoice.user_id == user_id)
        if client_id:
            query = query.where(Invoice.client_id == client_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_for_client(self, client_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Invoice).where(Invoice.client_id == client_id)
        )
        return result.scalar() or 0

    async def delete(self, invoice: Invoice) -> None:
        """Hard-delete an invoice together with its pending payment claims"""
        await self.session.execute(
            delete(PaymentRequest).where(PaymentRequest.invoice_id == invoice.id)
        )
        await self.session.delete(invoice)
        await self.session.flush()
        logger.info("Invoice deleted", invoice_id=invoice.id)
