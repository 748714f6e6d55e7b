"""Payment recording: the only path through which money enters an invoice"""

from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from invoicing.core.logging import metrics_logger
from invoicing.db.session import run_in_transaction
from invoicing.models.enums import InvoiceStatus, PaymentMethod
from invoicing.models.invoice import Invoice, InvoicePayment
from invoicing.repositories.invoice_repository import InvoiceRepository
from invoicing.schemas.invoice import PaymentCreate
from invoicing.services.calculator import to_money
from invoicing.services.invoice_lifecycle import recompute_status
from invoicing.services.ledger import ClientLedger

logger = structlog.get_logger()


def normalize_payment_method(value, default: PaymentMethod) -> PaymentMethod:
    """Missing method -> default; anything unrecognised -> other"""
    if value is None or value == "":
        return default
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).strip().lower())
    except ValueError:
        return PaymentMethod.OTHER


class PaymentService:
    """Applies payments to invoices and keeps the client ledger in step"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def apply_payment(self, invoice_id: str, data: PaymentCreate, user_id: str) -> Invoice:
        """Record a business-entered payment, retrying on concurrent modification"""

        async def work(session: AsyncSession) -> Invoice:
            invoice = await InvoiceRepository(session).get_for_business(invoice_id, user_id)
            if not invoice:
                raise NotFoundError("Invoice not found", {"invoice_id": invoice_id})
            await self.apply_in_session(session, invoice, data, default_method=PaymentMethod.CASH)
            return invoice

        return await run_in_transaction(
            self.session_factory, work, "apply_payment", max_attempts=self.max_attempts
        )

    async def apply_in_session(
        self,
        session: AsyncSession,
        invoice: Invoice,
        data: PaymentCreate,
        default_method: PaymentMethod
    ) -> InvoicePayment:
        """
        Validate and apply one payment inside the caller's transaction.

        Appends to the payment history, increments the paid amount, runs the
        status rules and moves the client ledger. The invoice flush carries the
        version check, so a concurrent writer turns into StaleDataError here.
        """
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvalidStateError(
                "Cannot record payment on a cancelled invoice",
                {"invoice_id": invoice.id}
            )

        amount = to_money(data.amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", {"amount": str(amount)})
        if amount > invoice.remaining_amount:
            raise ValidationError(
                "Payment amount exceeds remaining balance",
                {"amount": str(amount), "remaining_amount": str(invoice.remaining_amount)}
            )

        now = self.clock()
        payments = invoice.payments
        payment = InvoicePayment(
            sequence=len(payments) + 1,
            amount=amount,
            payment_date=data.payment_date or now.date(),
            payment_method=normalize_payment_method(data.payment_method, default_method),
            transaction_id=data.transaction_id,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        payments.append(payment)

        invoice.paid_amount = invoice.paid_amount + amount
        recompute_status(invoice, now)
        await session.flush()

        await ClientLedger(session).record_payment(invoice.client_id, amount)

        logger.info(
            "Payment applied",
            invoice_id=invoice.id,
            client_id=invoice.client_id,
            amount=str(amount),
            method=payment.payment_method.value,
            status=invoice.status.value
        )
        metrics_logger.log_business_metric(
            metric_name="payment_applied",
            value=float(amount),
            tags={"method": payment.payment_method.value, "status": invoice.status.value},
            unit="currency"
        )
        return payment
