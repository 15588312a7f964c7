# schemas/expense.py

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from casri.core.constants import ExpenseType, PaymentMethod
from casri.core.payment_state import PaymentStatus
from casri.schemas.common import CamelModel, Money, NonNegativeMoney, PositiveMoney


class ExpenseCreate(CamelModel):
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    expense_type: ExpenseType = ExpenseType.OTHERS
    payment_method: PaymentMethod = PaymentMethod.CASH
    description: Optional[str] = None
    amount_due: PositiveMoney
    amount_paid: NonNegativeMoney = Decimal("0")
    due_date: Optional[date] = None


class ExpenseUpdate(CamelModel):
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    expense_type: Optional[ExpenseType] = None
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None
    due_date: Optional[date] = None


class ExpenseResponse(CamelModel):
    id: int
    user_id: int
    client_name: Optional[str]
    client_phone: Optional[str]
    expense_type: ExpenseType
    payment_method: PaymentMethod
    description: Optional[str]
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: PaymentStatus
    due_date: Optional[date]
    created_at: datetime


class ExpenseSummary(CamelModel):
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_balance: Decimal
    count: int


class ExpenseListResponse(CamelModel):
    data: List[ExpenseResponse]
    total: int
    page: int
    limit: int
    summary: ExpenseSummary


class ExpensePayment(CamelModel):
    amount: Money
