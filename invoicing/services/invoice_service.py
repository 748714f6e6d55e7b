"""Invoice aggregate operations: create, update, delete, send, view, cancel, remind"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from invoicing.core.logging import metrics_logger
from invoicing.db.session import run_in_transaction
from invoicing.models.enums import InvoiceStatus
from invoicing.models.invoice import Invoice
from invoicing.repositories.client_repository import ClientRepository
from invoicing.repositories.invoice_repository import InvoiceNumberTaken, InvoiceRepository
from invoicing.repositories.user_repository import UserRepository
from invoicing.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    LineItemIn,
    ReminderCreate,
    SendInvoiceRequest,
)
from invoicing.services import invoice_lifecycle
from invoicing.services.calculator import calculate_totals
from invoicing.services.ledger import ClientLedger
from invoicing.services.numbering import InvoiceNumberingService

logger = structlog.get_logger()

# Plain attributes an update may overwrite as-is
SIMPLE_UPDATE_FIELDS = ("currency", "payment_terms", "notes", "internal_notes", "template")


class InvoiceService:
    """Service for invoice aggregate writes; each call is one unit of work"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        numbering: InvoiceNumberingService,
        default_currency: str = "INR",
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.numbering = numbering
        self.default_currency = default_currency
        self.max_attempts = max_attempts
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _run(self, work, operation: str):
        return await run_in_transaction(
            self.session_factory, work, operation, max_attempts=self.max_attempts
        )

    async def _get_owned(self, session: AsyncSession, invoice_id: str, user_id: str) -> Invoice:
        invoice = await InvoiceRepository(session).get_for_business(invoice_id, user_id)
        if not invoice:
            raise NotFoundError("Invoice not found", {"invoice_id": invoice_id})
        return invoice

    async def create_invoice(self, data: InvoiceCreate, user_id: str) -> Invoice:
        """
        Create a draft invoice and add it to the client's ledger.

        Numbers are assigned as prefix + padded per-business count. When that
        number is already taken the insert is retried once with a
        timestamp-suffixed number; a second collision is a ConflictError.
        """
        if data.due_date < data.issue_date:
            raise ValidationError(
                "Due date cannot be before issue date",
                {"issue_date": data.issue_date.isoformat(), "due_date": data.due_date.isoformat()}
            )

        async def work(session: AsyncSession, fallback: bool = False) -> Invoice:
            client = await ClientRepository(session).get_for_business(data.client_id, user_id)
            if not client:
                raise NotFoundError("Client not found", {"client_id": data.client_id})

            business = await UserRepository(session).get(user_id)
            prefix = self.numbering.resolve_prefix(business)
            if data.invoice_number:
                number = data.invoice_number
            elif fallback:
                number = self.numbering.fallback_number(prefix)
            else:
                number = await self.numbering.next_number(session, user_id, prefix)

            now = self.clock()
            invoice = Invoice(
                user_id=user_id,
                client_id=client.id,
                invoice_number=number,
                status=InvoiceStatus.DRAFT,
                issue_date=data.issue_date,
                due_date=data.due_date,
                payment_terms=data.payment_terms or client.payment_terms or "Net 30",
                currency=(data.currency or (business.currency if business else None) or self.default_currency).upper(),
                notes=data.notes,
                internal_notes=data.internal_notes,
                template=data.template or "standard",
                paid_amount=Decimal("0"),
                sent_history=[],
                reminders=[],
                viewed_at=None,
                paid_at=None,
                payments=[],
                created_at=now,
                updated_at=now,
            )
            invoice_lifecycle.apply_totals(invoice, calculate_totals(data.items, data.discount_amount))
            invoice_lifecycle.recompute_status(invoice, now)

            await InvoiceRepository(session).add(invoice)
            await ClientLedger(session).record_invoice_created(invoice)
            return invoice

        try:
            invoice = await self._run(work, "create_invoice")
        except InvoiceNumberTaken as e:
            if data.invoice_number:
                raise ConflictError("Invoice number already exists", e.details)
            logger.warning("Invoice number collision, retrying with fallback", **e.details)

            async def fallback_work(session: AsyncSession) -> Invoice:
                return await work(session, fallback=True)

            try:
                invoice = await self._run(fallback_work, "create_invoice")
            except InvoiceNumberTaken as retry_error:
                raise ConflictError("Could not assign a unique invoice number", retry_error.details)

        logger.info(
            "Invoice created",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            client_id=invoice.client_id,
            total_amount=str(invoice.total_amount),
            status=invoice.status.value
        )
        metrics_logger.log_business_metric(
            metric_name="invoice_created",
            value=float(invoice.total_amount),
            tags={"currency": invoice.currency},
            unit="currency"
        )
        return invoice

    async def update_invoice(self, invoice_id: str, data: InvoiceUpdate, user_id: str) -> Invoice:
        """Apply an allow-listed partial update, recomputing totals and ledger"""
        fields = data.model_dump(exclude_unset=True)

        async def work(session: AsyncSession) -> Invoice:
            invoice = await self._get_owned(session, invoice_id, user_id)
            invoice_lifecycle.ensure_mutable(invoice, "update")

            for immutable in ("invoice_number", "user_id"):
                value = fields.get(immutable)
                if value is not None and value != getattr(invoice, immutable):
                    raise ValidationError(
                        f"{immutable} cannot be changed",
                        {"field": immutable}
                    )

            old_client_id = invoice.client_id
            old_total = invoice.total_amount

            new_client_id = fields.get("client_id")
            if new_client_id and new_client_id != old_client_id:
                client = await ClientRepository(session).get_for_business(new_client_id, user_id)
                if not client:
                    raise NotFoundError("Client not found", {"client_id": new_client_id})
                invoice.client_id = client.id

            issue_date = fields.get("issue_date") or invoice.issue_date
            due_date = fields.get("due_date") or invoice.due_date
            if due_date < issue_date:
                raise ValidationError(
                    "Due date cannot be before issue date",
                    {"issue_date": issue_date.isoformat(), "due_date": due_date.isoformat()}
                )
            invoice.issue_date = issue_date
            invoice.due_date = due_date

            if data.items is not None or data.discount_amount is not None:
                items = data.items if data.items is not None else [
                    LineItemIn.model_validate(item) for item in invoice.items
                ]
                discount = data.discount_amount if data.discount_amount is not None else invoice.discount_amount
                invoice_lifecycle.apply_totals(invoice, calculate_totals(items, discount))

            for field in SIMPLE_UPDATE_FIELDS:
                if field in fields and (fields[field] is not None or field in ("notes", "internal_notes")):
                    setattr(invoice, field, fields[field])
            if invoice.currency:
                invoice.currency = invoice.currency.upper()

            invoice_lifecycle.recompute_status(invoice, self.clock())
            await session.flush()

            ledger = ClientLedger(session)
            if invoice.client_id != old_client_id:
                await ledger.transfer_invoice(
                    old_client_id, invoice.client_id, old_total, invoice.total_amount, invoice.paid_amount
                )
            elif invoice.total_amount != old_total:
                await ledger.record_invoice_adjusted(invoice.client_id, invoice.total_amount - old_total)
            return invoice

        invoice = await self._run(work, "update_invoice")
        logger.info(
            "Invoice updated",
            invoice_id=invoice.id,
            fields=sorted(fields),
            total_amount=str(invoice.total_amount),
            status=invoice.status.value
        )
        return invoice

    async def delete_invoice(self, invoice_id: str, user_id: str) -> None:
        """Remove a non-paid invoice; payments already received stay in the client's total_paid"""

        async def work(session: AsyncSession) -> Invoice:
            invoice = await self._get_owned(session, invoice_id, user_id)
            if invoice.status == InvoiceStatus.PAID:
                raise InvalidStateError(
                    "Cannot delete a paid invoice",
                    {"invoice_id": invoice.id}
                )
            await ClientLedger(session).record_invoice_deleted(invoice)
            await InvoiceRepository(session).delete(invoice)
            return invoice

        invoice = await self._run(work, "delete_invoice")
        logger.info("Invoice removed", invoice_id=invoice_id, client_id=invoice.client_id)

    async def mark_sent(self, invoice_id: str, data: SendInvoiceRequest, user_id: str) -> Invoice:
        async def work(session: AsyncSession) -> Invoice:
            invoice = await self._get_owned(session, invoice_id, user_id)
            sent_to = data.sent_to
            if not sent_to:
                client = await ClientRepository(session).get(invoice.client_id)
                sent_to = client.email if client else None
            invoice_lifecycle.mark_sent(invoice, self.clock(), sent_to, data.method)
            await session.flush()
            return invoice

        invoice = await self._run(work, "send_invoice")
        logger.info("Invoice sent", invoice_id=invoice.id, method=data.method.value)
        return invoice

    async def cancel_invoice(self, invoice_id: str, user_id: str) -> Invoice:
        async def work(session: AsyncSession) -> Invoice:
            invoice = await self._get_owned(session, invoice_id, user_id)
            invoice_lifecycle.cancel(invoice, self.clock())
            await session.flush()
            return invoice

        invoice = await self._run(work, "cancel_invoice")
        logger.info("Invoice cancelled", invoice_id=invoice.id)
        return invoice

    async def add_reminder(self, invoice_id: str, data: ReminderCreate, user_id: str) -> Tuple[Invoice, dict]:
        async def work(session: AsyncSession):
            invoice = await self._get_owned(session, invoice_id, user_id)
            reminder = invoice_lifecycle.add_reminder(invoice, self.clock(), data.type)
            await session.flush()
            return invoice, reminder

        invoice, reminder = await self._run(work, "add_reminder")
        logger.info("Reminder recorded", invoice_id=invoice.id, days_overdue=reminder["days_overdue"])
        return invoice, reminder

    async def view_as_client(self, invoice_id: str, client_ids) -> Invoice:
        """Portal view; a sent invoice becomes viewed"""

        async def work(session: AsyncSession) -> Invoice:
            invoice = await InvoiceRepository(session).get_for_clients(invoice_id, client_ids)
            if not invoice:
                raise NotFoundError("Invoice not found", {"invoice_id": invoice_id})
            if invoice_lifecycle.mark_viewed(invoice, self.clock()):
                await session.flush()
                logger.info("Invoice viewed by client", invoice_id=invoice.id)
            return invoice

        return await self._run(work, "view_invoice")
