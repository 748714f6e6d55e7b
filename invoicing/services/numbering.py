"""Invoice number assignment"""

from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.models.invoice import Invoice
from invoicing.models.user import User

logger = structlog.get_logger()


class NumberingConfig(BaseModel):
    default_prefix: str = "INV"
    padding: int = 4


class InvoiceNumberingService:
    """
    Assigns ``PREFIX-0001`` style numbers, sequential per business.

    Counting then inserting is not atomic; the (user_id, invoice_number) unique
    constraint is the real guarantee and collisions fall back to a
    timestamp-suffixed number (see InvoiceService.create_invoice).
    """

    def __init__(self, config: NumberingConfig, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve_prefix(self, business: Optional[User]) -> str:
        if business is not None and business.invoice_prefix:
            return business.invoice_prefix
        return self.config.default_prefix

    def format_number(self, prefix: str, sequence: int) -> str:
        return f"{prefix}-{str(sequence).zfill(self.config.padding)}"

    async def next_number(self, session: AsyncSession, user_id: str, prefix: str) -> str:
        result = await session.execute(
            select(func.count()).select_from(Invoice).where(Invoice.user_id == user_id)
        )
        count = result.scalar() or 0
        return self.format_number(prefix, count + 1)

    def fallback_number(self, prefix: str) -> str:
        number = f"{prefix}-{int(self.clock().timestamp() * 1000)}"
        logger.warning("Falling back to timestamp invoice number", invoice_number=number)
        return number
