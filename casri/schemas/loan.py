# schemas/loan.py

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from casri.core.payment_state import PaymentStatus
from casri.schemas.common import CamelModel, Money, NonNegativeMoney, PositiveMoney


class LoanCreate(CamelModel):
    person_name: str = Field(..., min_length=1)
    product_name: Optional[str] = None
    quantity: int = Field(1, gt=0)
    description: Optional[str] = None
    amount_due: PositiveMoney
    amount_paid: NonNegativeMoney = Decimal("0")
    due_date: Optional[date] = None

    # Defaults to today
    loan_date: Optional[date] = None


class LoanUpdate(CamelModel):
    person_name: Optional[str] = Field(None, min_length=1)
    product_name: Optional[str] = None
    quantity: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    due_date: Optional[date] = None
    loan_date: Optional[date] = None


class LoanPayment(CamelModel):
    amount: Money


class LoanResponse(CamelModel):
    id: int
    user_id: int
    person_name: str
    product_name: Optional[str]
    quantity: int
    description: Optional[str]
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: PaymentStatus
    is_paid: bool
    due_date: Optional[date]
    loan_date: date
    paid_date: Optional[datetime]
    created_at: datetime


class LoanTotals(CamelModel):
    total_amount: Decimal
    unpaid_amount: Decimal
    paid_amount: Decimal


class LoanListResponse(CamelModel):
    data: List[LoanResponse]
    total: int
    page: int
    limit: int
    totals: LoanTotals


class LoanMonth(CamelModel):
    month: int
    count: int
    total_amount: Decimal
    unpaid_amount: Decimal


class LoanStats(CamelModel):
    year: int
    total_loans: int
    unpaid_loans: int
    paid_loans: int
    total_amount: Decimal
    unpaid_amount: Decimal
    paid_amount: Decimal
    monthly: List[LoanMonth]
