# casri/models/purchases.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from casri.database import Base
from casri.core.constants import PaymentMethod, sql_in
from casri.core.payment_state import PaymentStatus


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)

    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    total = Column(Numeric(12, 2), nullable=False)
    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    remaining_balance = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    notes = Column(Text, nullable=True)

    purchase_date = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    vendor = relationship("Vendor", back_populates="purchases")
    user = relationship("User")

    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    __table_args__ = (
        Index("ix_purchases_vendor_date", "vendor_id", "purchase_date"),
        CheckConstraint("amount_due > 0", name="ck_purchase_amount_due_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_purchase_amount_paid_non_negative"),
        CheckConstraint("amount_paid <= amount_due", name="ck_purchase_paid_within_due"),
        CheckConstraint(f"status IN ({sql_in(PaymentStatus)})", name="ck_purchase_status_valid"),
        CheckConstraint(f"payment_method IN ({sql_in(PaymentMethod)})", name="ck_purchase_payment_method_valid"),
    )
