"""Prospective clients asking a business to take them on"""

from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from invoicing.core.logging import metrics_logger
from invoicing.db.session import run_in_transaction
from invoicing.models.client import Client
from invoicing.models.enums import ClientStatus, PaymentMethod, ProfileRequestStatus
from invoicing.models.profile_request import ProfileRequest
from invoicing.models.user import User
from invoicing.repositories.client_repository import ClientRepository
from invoicing.repositories.profile_request_repository import ProfileRequestRepository
from invoicing.repositories.user_repository import UserRepository
from invoicing.schemas.profile_request import ProfileRequestCreate
from invoicing.services.client_service import normalize_tax_id

logger = structlog.get_logger()


class ProfileRequestService:
    """
    pending -> approved | rejected, both terminal.

    Anyone may submit a profile to a business. Approval creates the client
    record (without portal access) in the same transaction that closes the
    request; an existing client with the same email or tax id blocks it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _resolve_business(self, session: AsyncSession, data: ProfileRequestCreate) -> User:
        repo = UserRepository(session)
        if data.business_user_id:
            business = await repo.get(data.business_user_id)
        elif data.business_email:
            business = await repo.get_by_email(data.business_email)
        else:
            raise ValidationError("Business id or email is required")
        if not business:
            raise NotFoundError(
                "Business not found",
                {"business_user_id": data.business_user_id, "business_email": data.business_email}
            )
        return business

    async def submit(self, data: ProfileRequestCreate) -> ProfileRequest:
        tax_id = normalize_tax_id(data.tax_id)

        async def work(session: AsyncSession) -> ProfileRequest:
            business = await self._resolve_business(session, data)
            request = ProfileRequest(
                business_user_id=business.id,
                name=data.name,
                email=data.email.lower(),
                company=data.company,
                phone=data.phone,
                address=data.address.model_dump() if data.address else None,
                tax_id=tax_id,
                notes=data.notes,
                status=ProfileRequestStatus.PENDING,
                reviewed_at=None,
                reviewed_by=None,
                client_id=None,
            )
            return await ProfileRequestRepository(session).add(request)

        request = await run_in_transaction(self.session_factory, work, "submit_profile_request")
        logger.info("Profile request submitted", request_id=request.id, business_user_id=request.business_user_id)
        return request

    async def list_for_business(
        self,
        user_id: str,
        status: Optional[ProfileRequestStatus] = ProfileRequestStatus.PENDING
    ) -> List[ProfileRequest]:
        async def work(session: AsyncSession):
            return await ProfileRequestRepository(session).list_for_business(user_id, status)

        return await run_in_transaction(self.session_factory, work, "list_profile_requests")

    async def _get_pending(self, session: AsyncSession, request_id: str, user_id: str) -> ProfileRequest:
        request = await ProfileRequestRepository(session).get_for_business(request_id, user_id)
        if not request:
            raise NotFoundError("Profile request not found", {"request_id": request_id})
        if request.status != ProfileRequestStatus.PENDING:
            raise InvalidStateError(
                "Request is not pending",
                {"request_id": request_id, "status": request.status.value}
            )
        return request

    def _close(self, request: ProfileRequest, status: ProfileRequestStatus, user_id: str) -> None:
        request.status = status
        request.reviewed_at = self.clock()
        request.reviewed_by = user_id

    async def approve(self, request_id: str, user_id: str) -> Tuple[ProfileRequest, Client]:
        """Turn the request into a client of the reviewing business"""

        async def work(session: AsyncSession):
            request = await self._get_pending(session, request_id, user_id)
            clients = ClientRepository(session)
            if await clients.get_by_email(user_id, request.email):
                raise ConflictError("Client with this email already exists", {"email": request.email})
            if request.tax_id and await clients.tax_id_in_use(request.tax_id):
                raise ConflictError("Tax ID already registered to another client", {"tax_id": request.tax_id})

            client = await clients.add(Client(
                user_id=user_id,
                name=request.name,
                email=request.email,
                company=request.company,
                phone=request.phone,
                address=request.address,
                tax_id=request.tax_id,
                notes=request.notes,
                status=ClientStatus.ACTIVE,
                is_approved=False,
                payment_terms="Net 30",
                preferred_payment_method=PaymentMethod.BANK_TRANSFER,
                contact_person=None,
                approval_token=None,
                hashed_password=None,
                last_login=None,
            ))
            request.client_id = client.id
            self._close(request, ProfileRequestStatus.APPROVED, user_id)
            await session.flush()
            return request, client

        request, client = await run_in_transaction(self.session_factory, work, "approve_profile_request")
        logger.info("Profile request approved", request_id=request.id, client_id=client.id)
        metrics_logger.log_business_metric(
            metric_name="profile_request_reviewed",
            value=1,
            tags={"decision": "approved"}
        )
        return request, client

    async def reject(self, request_id: str, user_id: str) -> ProfileRequest:
        async def work(session: AsyncSession) -> ProfileRequest:
            request = await self._get_pending(session, request_id, user_id)
            self._close(request, ProfileRequestStatus.REJECTED, user_id)
            await session.flush()
            return request

        request = await run_in_transaction(self.session_factory, work, "reject_profile_request")
        logger.info("Profile request rejected", request_id=request.id)
        metrics_logger.log_business_metric(
            metric_name="profile_request_reviewed",
            value=1,
            tags={"decision": "rejected"}
        )
        return request
