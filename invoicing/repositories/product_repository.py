"""Product Repository for database operations"""

from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import ConflictError
from invoicing.models.product import Product, PRODUCT_SKU_CONSTRAINT


def _conflict(exc: IntegrityError, product: Product) -> ConflictError:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if PRODUCT_SKU_CONSTRAINT in message or "products.sku" in message:
        return ConflictError("Product SKU already exists", {"sku": product.sku})
    return ConflictError("Product name already exists", {"name": product.name})


class ProductRepository:
    """Repository for product catalog database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, product: Product) -> Product:
        self.session.add(product)
        await self.flush(product)
        return product

    async def flush(self, product: Product) -> None:
        """Flush pending changes, mapping unique violations to ConflictError"""
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise _conflict(e, product) from e

    async def get_for_business(self, product_id: str, user_id: str) -> Optional[Product]:
        result = await self.session.execute(
            select(Product).where(Product.id == product_id, Product.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        user_id: str,
        search: Optional[str] = None,
        active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Product], int]:
        """Search products by name, SKU or description"""
        filters = [Product.user_id == user_id]
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.description.ilike(pattern),
            ))
        if active is not None:
            filters.append(Product.is_active == active)

        count_result = await self.session.execute(
            select(func.count()).select_from(Product).where(and_(*filters))
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            select(Product).where(and_(*filters)).order_by(Product.created_at.desc(), Product.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def delete(self, product: Product) -> None:
        await self.session.delete(product)
        await self.session.flush()
