"""Password hashing and JWT helpers"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Dict
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from invoicing.core.config import settings


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against a stored hash; missing hashes never match"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


class TokenService:
    """
    Issues and verifies signed JWTs for one audience.

    Business users and portal clients each get their own instance so that a
    token minted for one surface is never accepted by the other.
    """

    def __init__(self, secret_key: str, algorithm: str, default_expiry: timedelta, token_type: str):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.default_expiry = default_expiry
        self.token_type = token_type

    def create(
        self,
        subject: str,
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
        token_type: Optional[str] = None
    ) -> str:
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(subject),
            "exp": now + (expires_delta or self.default_expiry),
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": token_type or self.token_type,
        }
        if additional_claims:
            to_encode.update(additional_claims)

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str, token_type: Optional[str] = None) -> Optional[str]:
        """Return the subject of a valid token of the expected type, else None"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type") != (token_type or self.token_type):
            return None
        return payload.get("sub")


def business_token_service() -> TokenService:
    return TokenService(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        default_expiry=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        token_type="access",
    )


def client_token_service() -> TokenService:
    return TokenService(
        secret_key=settings.client_secret_key,
        algorithm=settings.ALGORITHM,
        default_expiry=timedelta(days=settings.CLIENT_TOKEN_EXPIRE_DAYS),
        token_type="client",
    )
