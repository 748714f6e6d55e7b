"""Business account registration, login and settings"""

from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import AuthenticationError, ConflictError, NotFoundError
from invoicing.core.security import TokenService, get_password_hash, verify_password
from invoicing.db.session import run_in_transaction
from invoicing.models.user import User
from invoicing.repositories.user_repository import UserRepository
from invoicing.schemas.auth import RegisterRequest, SettingsUpdate

logger = structlog.get_logger()


class AuthService:
    """Service for business user accounts"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        tokens: TokenService,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.tokens = tokens
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def register(self, data: RegisterRequest) -> Tuple[User, str]:
        async def work(session: AsyncSession) -> User:
            repo = UserRepository(session)
            email = data.email.lower()
            if await repo.get_by_email(email):
                raise ConflictError("User already exists with this email", {"email": email})

            user = User(
                name=data.name,
                email=email,
                hashed_password=get_password_hash(data.password),
                business_name=data.business_name,
                business_address=data.business_address.model_dump() if data.business_address else None,
                business_phone=data.business_phone,
                business_email=data.business_email.lower() if data.business_email else None,
                tax_id=data.tax_id,
                invoice_prefix=data.invoice_prefix,
                currency=data.currency.upper() if data.currency else None,
                payment_terms="Net 30",
                last_login=None,
            )
            return await repo.add(user)

        user = await run_in_transaction(self.session_factory, work, "register_user")
        logger.info("Business registered", user_id=user.id)
        return user, self.tokens.create(user.id)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        async def work(session: AsyncSession) -> User:
            user = await UserRepository(session).get_by_email(email)
            if not user or not verify_password(password, user.hashed_password):
                raise AuthenticationError("Invalid email or password")
            user.last_login = self.clock()
            await session.flush()
            return user

        user = await run_in_transaction(self.session_factory, work, "login_user")
        logger.info("Business logged in", user_id=user.id)
        return user, self.tokens.create(user.id)

    async def authenticate(self, token: str) -> User:
        user_id = self.tokens.verify(token)
        if not user_id:
            raise AuthenticationError("Invalid or expired token")

        async def work(session: AsyncSession) -> Optional[User]:
            return await UserRepository(session).get(user_id)

        user = await run_in_transaction(self.session_factory, work, "authenticate_user")
        if not user:
            raise AuthenticationError("User no longer exists")
        return user

    async def update_settings(self, user_id: str, data: SettingsUpdate) -> User:
        fields = data.model_dump(exclude_unset=True, exclude_none=True)

        async def work(session: AsyncSession) -> User:
            user = await UserRepository(session).get(user_id)
            if not user:
                raise NotFoundError("User not found", {"user_id": user_id})
            for field, value in fields.items():
                setattr(user, field, value.upper() if field == "currency" else value)
            await session.flush()
            return user

        user = await run_in_transaction(self.session_factory, work, "update_settings")
        logger.info("Business settings updated", user_id=user.id, fields=sorted(fields))
        return user
