# casri/models/products.py

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from casri.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    barcode = Column(String(64), unique=True, nullable=True)
    category_id = Column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    cost = Column(Numeric(12, 2), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    # Only moved by sale/purchase ledger operations
    stock = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    expiry_date = Column(Date, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_products_name", "name"),
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("cost >= 0", name="ck_product_cost_non_negative"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        CheckConstraint("low_stock_threshold >= 0", name="ck_low_stock_non_negative"),
    )

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @property
    def stock_status(self) -> str:
        if self.stock == 0:
            return "out"
        if self.stock <= self.low_stock_threshold:
            return "low"
        return "high"
