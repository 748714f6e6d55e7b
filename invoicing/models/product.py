"""Product catalog model"""

from decimal import Decimal

from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Numeric, UniqueConstraint

from invoicing.db.base import Base, new_id

PRODUCT_NAME_CONSTRAINT = "uq_products_user_name"
PRODUCT_SKU_CONSTRAINT = "uq_products_user_sku"


class Product(Base):
    """Reusable line item of a business; invoices copy its values, never reference it"""

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name=PRODUCT_NAME_CONSTRAINT),
        UniqueConstraint("user_id", "sku", name=PRODUCT_SKU_CONSTRAINT),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    sku = Column(String(64))
    description = Column(Text)
    rate = Column(Numeric(14, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    # Units in stock; informational only
    quantity = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    unit = Column(String(32), default="unit", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
