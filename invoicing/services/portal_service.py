"""Client portal access: invitation, approval and login"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from invoicing.core.security import TokenService, get_password_hash, verify_password
from invoicing.db.session import run_in_transaction
from invoicing.models.client import Client
from invoicing.models.enums import ClientStatus
from invoicing.repositories.client_repository import ClientRepository

logger = structlog.get_logger()

APPROVAL_TOKEN_TYPE = "approval"


class ClientPortalService:
    """
    Portal credentials live on the client record.

    The same email may exist as a client of several businesses (or several
    times within one). Login walks every such record, most recently updated
    first, and accepts the first approved one whose password matches.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        tokens: TokenService,
        portal_url: str,
        approval_expiry: timedelta = timedelta(days=7),
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.tokens = tokens
        self.portal_url = portal_url.rstrip("/")
        self.approval_expiry = approval_expiry
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def invite(self, client_id: str, user_id: str) -> Tuple[Client, str]:
        """Issue an approval token for the client and return the approval link"""

        async def work(session: AsyncSession) -> Tuple[Client, str]:
            client = await ClientRepository(session).get_for_business(client_id, user_id)
            if not client:
                raise NotFoundError("Client not found", {"client_id": client_id})
            token = self.tokens.create(
                client.id,
                expires_delta=self.approval_expiry,
                token_type=APPROVAL_TOKEN_TYPE,
            )
            client.approval_token = token
            await session.flush()
            return client, f"{self.portal_url}/approve?token={token}"

        client, link = await run_in_transaction(self.session_factory, work, "invite_client")
        logger.info("Client invited to portal", client_id=client.id, user_id=user_id)
        return client, link

    async def approve(self, token: str, password: str) -> Client:
        client_id = self.tokens.verify(token, token_type=APPROVAL_TOKEN_TYPE)
        if not client_id:
            raise ValidationError("Invalid or expired approval token")

        async def work(session: AsyncSession) -> Client:
            client = await ClientRepository(session).get(client_id)
            if not client or client.approval_token != token:
                raise ValidationError("Invalid or expired approval token")
            client.hashed_password = get_password_hash(password)
            client.is_approved = True
            client.approval_token = None
            client.status = ClientStatus.ACTIVE
            await session.flush()
            return client

        client = await run_in_transaction(self.session_factory, work, "approve_client")
        logger.info("Client portal access approved", client_id=client.id)
        return client

    async def login(self, email: str, password: str) -> Tuple[Client, str]:
        async def work(session: AsyncSession) -> Client:
            candidates = await ClientRepository(session).find_all_by_email(email)
            pending_match = False
            for candidate in candidates:
                if not verify_password(password, candidate.hashed_password):
                    continue
                if candidate.is_approved and candidate.status == ClientStatus.ACTIVE:
                    candidate.last_login = self.clock()
                    await session.flush()
                    return candidate
                pending_match = True

            if pending_match:
                raise AuthorizationError("Client account is not approved yet")
            raise ValidationError("Invalid email or password")

        client = await run_in_transaction(self.session_factory, work, "client_login")
        logger.info("Client logged in", client_id=client.id)
        return client, self.tokens.create(client.id)

    async def authenticate(self, token: str) -> Client:
        """Resolve a portal token to an approved, active client"""
        client_id = self.tokens.verify(token)
        if not client_id:
            raise AuthenticationError("Invalid or expired client token")

        async def work(session: AsyncSession) -> Optional[Client]:
            return await ClientRepository(session).get(client_id)

        client = await run_in_transaction(self.session_factory, work, "authenticate_client")
        if not client or not client.is_approved or client.status != ClientStatus.ACTIVE:
            raise AuthenticationError("Client access has been revoked")
        return client

    async def peer_ids(self, client: Client) -> List[str]:
        """Client ids of the same business sharing this client's email"""

        async def work(session: AsyncSession) -> List[str]:
            return await ClientRepository(session).peer_ids(client)

        return await run_in_transaction(self.session_factory, work, "client_peer_ids")
