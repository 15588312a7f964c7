# casri/models/sales.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from casri.database import Base
from casri.core.constants import PaymentMethod, sql_in
from casri.core.payment_state import PaymentStatus


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    sale_number = Column(String(40), unique=True, nullable=False, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    customer_name = Column(String, nullable=True)
    customer_phone = Column(String(32), nullable=True)
    notes = Column(Text, nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False)

    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    remaining_balance = Column(Numeric(12, 2), nullable=False)
    change_amount = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    total_quantity = Column(Integer, nullable=False, default=0)

    due_date = Column(Date, nullable=True)

    # Client supplied idempotency key (double click protection)
    request_id = Column(String(64), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    payments = relationship(
        "PaymentHistory",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="PaymentHistory.id",
    )

    __table_args__ = (
        Index("ix_sales_user_created", "user_id", "created_at"),
        UniqueConstraint("user_id", "request_id", name="uq_sale_user_request_id"),
        CheckConstraint("amount_due > 0", name="ck_sale_amount_due_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_sale_amount_paid_non_negative"),
        CheckConstraint("amount_paid <= amount_due", name="ck_sale_paid_within_due"),
        CheckConstraint("remaining_balance >= 0", name="ck_sale_remaining_non_negative"),
        CheckConstraint(f"status IN ({sql_in(PaymentStatus)})", name="ck_sale_status_valid"),
        CheckConstraint(f"payment_method IN ({sql_in(PaymentMethod)})", name="ck_sale_payment_method_valid"),
    )
