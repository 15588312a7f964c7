# casri/models/expenses.py

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from casri.database import Base
from casri.core.constants import ExpenseType, PaymentMethod, sql_in
from casri.core.payment_state import PaymentStatus


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    client_name = Column(String, nullable=True)
    client_phone = Column(String(32), nullable=True)
    expense_type = Column(String(40), nullable=False, default=ExpenseType.OTHERS.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    description = Column(Text, nullable=True)

    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    due_date = Column(Date, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("amount_due > 0", name="ck_expense_amount_due_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_expense_amount_paid_non_negative"),
        CheckConstraint("amount_paid <= amount_due", name="ck_expense_paid_within_due"),
        CheckConstraint(f"expense_type IN ({sql_in(ExpenseType)})", name="ck_expense_type_valid"),
        CheckConstraint(f"status IN ({sql_in(PaymentStatus)})", name="ck_expense_status_valid"),
    )
