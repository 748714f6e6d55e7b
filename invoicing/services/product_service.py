"""Product catalog management"""

from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from invoicing.core.exceptions import NotFoundError
from invoicing.db.session import run_in_transaction
from invoicing.models.product import Product
from invoicing.repositories.product_repository import ProductRepository
from invoicing.schemas.product import ProductCreate, ProductUpdate
from invoicing.services.calculator import to_money

logger = structlog.get_logger()

# Optional columns an update may set to null
CLEARABLE_FIELDS = ("sku", "description")


def normalize_sku(value: Optional[str]) -> Optional[str]:
    """Blank SKUs are stored as absent so they never collide"""
    if value is None:
        return None
    return value.strip() or None


class ProductService:
    """Per-business catalog of reusable line items"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _get_owned(self, session: AsyncSession, product_id: str, user_id: str) -> Product:
        product = await ProductRepository(session).get_for_business(product_id, user_id)
        if not product:
            raise NotFoundError("Product not found", {"product_id": product_id})
        return product

    async def list_products(
        self,
        user_id: str,
        search: Optional[str] = None,
        active: Optional[bool] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Product], int]:
        async def work(session: AsyncSession):
            return await ProductRepository(session).search(
                user_id, search=search, active=active, skip=(page - 1) * limit, limit=limit
            )

        return await run_in_transaction(self.session_factory, work, "list_products")

    async def get_product(self, product_id: str, user_id: str) -> Product:
        async def work(session: AsyncSession) -> Product:
            return await self._get_owned(session, product_id, user_id)

        return await run_in_transaction(self.session_factory, work, "get_product")

    async def create_product(self, data: ProductCreate, user_id: str) -> Product:
        async def work(session: AsyncSession) -> Product:
            product = Product(
                user_id=user_id,
                name=data.name,
                sku=normalize_sku(data.sku),
                description=data.description,
                rate=to_money(data.rate),
                tax_rate=data.tax_rate,
                quantity=data.quantity,
                unit=data.unit or "unit",
                is_active=data.is_active,
            )
            return await ProductRepository(session).add(product)

        product = await run_in_transaction(self.session_factory, work, "create_product")
        logger.info("Product created", product_id=product.id, user_id=user_id, sku=product.sku)
        return product

    async def update_product(self, product_id: str, data: ProductUpdate, user_id: str) -> Product:
        fields = data.model_dump(exclude_unset=True)

        async def work(session: AsyncSession) -> Product:
            product = await self._get_owned(session, product_id, user_id)
            for field, value in fields.items():
                if value is None and field not in CLEARABLE_FIELDS:
                    continue
                if field == "sku":
                    value = normalize_sku(value)
                elif field == "rate":
                    value = to_money(value)
                setattr(product, field, value)
            await ProductRepository(session).flush(product)
            return product

        product = await run_in_transaction(self.session_factory, work, "update_product")
        logger.info("Product updated", product_id=product.id, fields=sorted(fields))
        return product

    async def delete_product(self, product_id: str, user_id: str) -> None:
        """Invoices keep copies of product values, so deletion is always safe"""

        async def work(session: AsyncSession) -> None:
            product = await self._get_owned(session, product_id, user_id)
            await ProductRepository(session).delete(product)

        await run_in_transaction(self.session_factory, work, "delete_product")
        logger.info("Product deleted", product_id=product_id, user_id=user_id)
