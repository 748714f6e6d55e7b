"""Payment Request Repository for database operations"""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.models.client import Client
from invoicing.models.enums import PaymentRequestStatus
from invoicing.models.invoice import Invoice
from invoicing.models.payment_request import PaymentRequest

# (request, invoice number, client name)
RequestRow = Tuple[PaymentRequest, Optional[str], Optional[str]]


class PaymentRequestRepository:
    """Repository for payment request database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, request: PaymentRequest) -> PaymentRequest:
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_for_business(self, request_id: str, user_id: str) -> Optional[PaymentRequest]:
        result = await self.session.execute(
            select(PaymentRequest).where(
                PaymentRequest.id == request_id,
                PaymentRequest.business_user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    def _with_labels(self):
        return (
            select(PaymentRequest, Invoice.invoice_number, Client.name)
            .outerjoin(Invoice, Invoice.id == PaymentRequest.invoice_id)
            .outerjoin(Client, Client.id == PaymentRequest.client_id)
        )

    async def list_for_business(
        self,
        user_id: str,
        status: Optional[PaymentRequestStatus] = PaymentRequestStatus.PENDING
    ) -> List[RequestRow]:
        query = self._with_labels().where(PaymentRequest.business_user_id == user_id)
        if status is not None:
            query = query.where(PaymentRequest.status == status)
        result = await self.session.execute(query.order_by(PaymentRequest.created_at.desc()))
        return [tuple(row) for row in result.all()]

    async def list_for_client(self, client_id: str) -> List[RequestRow]:
        result = await self.session.execute(
            self._with_labels()
            .where(PaymentRequest.client_id == client_id)
            .order_by(PaymentRequest.created_at.desc())
        )
        return [tuple(row) for row in result.all()]
