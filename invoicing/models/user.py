"""Business user model"""

from sqlalchemy import Column, String, DateTime, JSON

from invoicing.db.base import Base, new_id


class User(Base):
    """Business account that owns clients and invoices"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)

    # Business Information
    business_name = Column(String(255))
    business_address = Column(JSON)
    business_phone = Column(String(50))
    business_email = Column(String(255))
    tax_id = Column(String(50), index=True)

    # Settings
    invoice_prefix = Column(String(20))
    currency = Column(String(3))
    payment_terms = Column(String(50), default="Net 30")

    last_login = Column(DateTime(timezone=True))
