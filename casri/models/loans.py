# casri/models/loans.py

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from casri.database import Base
from casri.core.payment_state import PaymentStatus
from casri.core.constants import sql_in


class Loan(Base):
    """Goods or cash handed to a person on trust, paid back over time."""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    person_name = Column(String, nullable=False, index=True)
    product_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    description = Column(Text, nullable=True)

    amount_due = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    due_date = Column(Date, nullable=True)

    loan_date = Column(Date, nullable=False, index=True)
    paid_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_loan_quantity_positive"),
        CheckConstraint("amount_due > 0", name="ck_loan_amount_due_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_loan_amount_paid_non_negative"),
        CheckConstraint("amount_paid <= amount_due", name="ck_loan_paid_within_due"),
        CheckConstraint(f"status IN ({sql_in(PaymentStatus)})", name="ck_loan_status_valid"),
    )

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value
