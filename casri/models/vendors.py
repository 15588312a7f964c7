# casri/models/vendors.py

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from casri.database import Base


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    location = Column(String, nullable=False)

    # Running aggregates, moved by delta on every purchase mutation
    total_purchases = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    balance = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    purchases = relationship(
        "Purchase",
        back_populates="vendor",
        order_by="Purchase.id.desc()",
    )

    __table_args__ = (
        CheckConstraint("total_purchases >= 0", name="ck_vendor_total_purchases_non_negative"),
    )
