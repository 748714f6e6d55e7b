"""Client payment claims and their review by the business"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from invoicing.core.logging import metrics_logger
from invoicing.db.session import run_in_transaction
from invoicing.models.client import Client
from invoicing.models.enums import InvoiceStatus, PaymentMethod, PaymentRequestStatus
from invoicing.models.invoice import Invoice
from invoicing.models.payment_request import PaymentRequest
from invoicing.repositories.invoice_repository import InvoiceRepository
from invoicing.repositories.payment_request_repository import PaymentRequestRepository, RequestRow
from invoicing.schemas.invoice import PaymentCreate
from invoicing.schemas.payment_request import PaymentRequestCreate
from invoicing.services.calculator import to_money
from invoicing.services.payment_service import PaymentService

logger = structlog.get_logger()


def approval_notes(request: PaymentRequest) -> str:
    if request.notes:
        return f"Client submitted: {request.notes}"
    return "Client-submitted payment approved"


class PaymentRequestService:
    """
    pending -> approved | rejected, both terminal.

    Submitting never touches the invoice or the ledger. Approval re-reads the
    invoice and hands the claim to PaymentService inside the same transaction,
    so the request is only marked approved when the payment really landed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        payments: PaymentService,
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.payments = payments
        self.max_attempts = max_attempts
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def submit(
        self,
        invoice_id: str,
        data: PaymentRequestCreate,
        client: Client,
        client_ids: Sequence[str]
    ) -> PaymentRequest:
        """Queue a pending claim against one of the client's invoices"""

        async def work(session: AsyncSession) -> PaymentRequest:
            invoice = await InvoiceRepository(session).get_for_clients(invoice_id, client_ids)
            if not invoice:
                raise NotFoundError("Invoice not found", {"invoice_id": invoice_id})
            if invoice.status == InvoiceStatus.CANCELLED:
                raise InvalidStateError(
                    "Cannot submit a payment for a cancelled invoice",
                    {"invoice_id": invoice.id}
                )

            amount = to_money(data.amount)
            if amount > invoice.remaining_amount:
                raise ValidationError(
                    "Payment amount exceeds remaining balance",
                    {"amount": str(amount), "remaining_amount": str(invoice.remaining_amount)}
                )

            now = self.clock()
            request = PaymentRequest(
                invoice_id=invoice.id,
                business_user_id=invoice.user_id,
                client_id=invoice.client_id,
                amount=amount,
                date=data.date or now.date(),
                method=data.method,
                transaction_id=data.transaction_id,
                notes=data.notes,
                status=PaymentRequestStatus.PENDING,
                reviewed_at=None,
                reviewed_by=None,
                created_at=now,
                updated_at=now,
            )
            return await PaymentRequestRepository(session).add(request)

        request = await run_in_transaction(self.session_factory, work, "submit_payment_request")
        logger.info(
            "Payment request submitted",
            request_id=request.id,
            invoice_id=invoice_id,
            client_id=client.id,
            amount=str(request.amount)
        )
        return request

    async def list_for_business(
        self,
        user_id: str,
        status: Optional[PaymentRequestStatus] = PaymentRequestStatus.PENDING
    ) -> List[RequestRow]:
        async def work(session: AsyncSession):
            return await PaymentRequestRepository(session).list_for_business(user_id, status)

        return await run_in_transaction(self.session_factory, work, "list_payment_requests")

    async def list_for_client(self, client_id: str) -> List[RequestRow]:
        async def work(session: AsyncSession):
            return await PaymentRequestRepository(session).list_for_client(client_id)

        return await run_in_transaction(self.session_factory, work, "list_client_payment_requests")

    async def _get_pending(self, session: AsyncSession, request_id: str, user_id: str) -> PaymentRequest:
        request = await PaymentRequestRepository(session).get_for_business(request_id, user_id)
        if not request:
            raise NotFoundError("Payment request not found", {"request_id": request_id})
        if request.status != PaymentRequestStatus.PENDING:
            raise InvalidStateError(
                "Request is not pending",
                {"request_id": request.id, "status": request.status.value}
            )
        return request

    async def approve(self, request_id: str, user_id: str) -> Tuple[PaymentRequest, Invoice]:
        """Apply the claimed amount as a payment and close the request"""

        async def work(session: AsyncSession):
            request = await self._get_pending(session, request_id, user_id)
            invoice = await InvoiceRepository(session).get_for_business(request.invoice_id, user_id)
            if not invoice:
                raise NotFoundError("Invoice not found", {"invoice_id": request.invoice_id})

            await self.payments.apply_in_session(
                session,
                invoice,
                PaymentCreate.model_construct(
                    amount=request.amount,
                    payment_date=request.date,
                    payment_method=request.method.value if request.method else None,
                    transaction_id=request.transaction_id,
                    notes=approval_notes(request),
                ),
                default_method=PaymentMethod.OTHER,
            )

            request.status = PaymentRequestStatus.APPROVED
            request.reviewed_at = self.clock()
            request.reviewed_by = user_id
            await session.flush()
            return request, invoice

        request, invoice = await run_in_transaction(
            self.session_factory, work, "approve_payment_request", max_attempts=self.max_attempts
        )
        logger.info(
            "Payment request approved",
            request_id=request.id,
            invoice_id=invoice.id,
            amount=str(request.amount),
            invoice_status=invoice.status.value
        )
        metrics_logger.log_business_metric(
            metric_name="payment_request_reviewed",
            value=1,
            tags={"decision": "approved"}
        )
        return request, invoice

    async def reject(self, request_id: str, user_id: str) -> PaymentRequest:
        """Close the request without any monetary effect"""

        async def work(session: AsyncSession) -> PaymentRequest:
            request = await self._get_pending(session, request_id, user_id)
            request.status = PaymentRequestStatus.REJECTED
            request.reviewed_at = self.clock()
            request.reviewed_by = user_id
            await session.flush()
            return request

        request = await run_in_transaction(self.session_factory, work, "reject_payment_request")
        logger.info("Payment request rejected", request_id=request.id, invoice_id=request.invoice_id)
        metrics_logger.log_business_metric(
            metric_name="payment_request_reviewed",
            value=1,
            tags={"decision": "rejected"}
        )
        return request
