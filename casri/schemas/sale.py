# schemas/sale.py

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from casri.core.constants import PaymentMethod, StatsPeriod
from casri.core.payment_state import PaymentStatus
from casri.schemas.common import CamelModel, Money, NonNegativeMoney, Percent, PositiveMoney


class SaleItemCreate(CamelModel):
    product_id: int
    quantity: int = Field(..., gt=0)
    selling_price: NonNegativeMoney
    discount: Percent = Decimal("0")


class SaleCreate(CamelModel):
    products: List[SaleItemCreate] = Field(..., min_length=1)

    amount_due: PositiveMoney
    amount_paid: NonNegativeMoney = Decimal("0")

    # Cash handed over at the till; change is made when it exceeds amount_due
    amount_tendered: Optional[NonNegativeMoney] = None

    discount_percentage: Percent = Decimal("0")
    discount_amount: Optional[NonNegativeMoney] = None

    payment_method: PaymentMethod = PaymentMethod.CASH
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    sale_date: Optional[date] = None
    request_id: Optional[str] = Field(None, max_length=64)


class SaleUpdate(CamelModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    status: Optional[PaymentStatus] = None


class PaymentCreate(CamelModel):
    amount: Money
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class RefundCreate(CamelModel):
    notes: Optional[str] = None


class SaleItemResponse(CamelModel):
    id: int
    product_id: int
    name: str
    quantity: int
    selling_price: Decimal
    discount: Decimal
    item_total: Decimal
    item_discount: Decimal
    item_net: Decimal


class PaymentHistoryResponse(CamelModel):
    id: int
    amount: Decimal
    payment_method: PaymentMethod
    collected_by_id: int
    notes: Optional[str]
    created_at: datetime


class SaleResponse(CamelModel):
    id: int
    sale_number: str
    user_id: int
    customer_name: Optional[str]
    customer_phone: Optional[str]
    notes: Optional[str]
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    grand_total: Decimal
    amount_due: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    change_amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    total_quantity: int
    due_date: Optional[date]
    created_at: datetime
    items: List[SaleItemResponse]
    payments: List[PaymentHistoryResponse]


class SaleTotals(CamelModel):
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_remaining_balance: Decimal
    total_sales_value: Decimal


class SaleListResponse(CamelModel):
    data: List[SaleResponse]
    page: int
    limit: int
    total: int
    totals: SaleTotals


class SaleDeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_sale_id: int


class SaleBucket(CamelModel):
    count: int
    amount_due: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal


class TodaySummary(CamelModel):
    day: date
    total_sales: int
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_remaining_balance: Decimal
    total_items: int
    total_discount: Decimal
    sales_by_payment_method: Dict[str, SaleBucket]
    sales_by_status: Dict[str, SaleBucket]


class ProductSearchResult(CamelModel):
    id: int
    name: str
    barcode: Optional[str]
    price: Decimal
    stock: int
    in_stock: bool


class ReceivableSummary(CamelModel):
    total_receivables: int
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_remaining_balance: Decimal
    by_status: Dict[str, SaleBucket]
    by_payment_method: Dict[str, SaleBucket]
    oldest_due_date: Optional[date]


class ReceivableListResponse(CamelModel):
    data: List[SaleResponse]
    page: int
    limit: int
    total: int


class PaymentMethodBucket(CamelModel):
    count: int
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_sales: Decimal
    total_remaining_balance: Decimal


class PaymentMethodTotals(CamelModel):
    today_total: Decimal
    weekly_total: Decimal
    monthly_total: Decimal


class PaymentMethodStats(CamelModel):
    today: Dict[str, PaymentMethodBucket]
    week: Dict[str, PaymentMethodBucket]
    month: Dict[str, PaymentMethodBucket]
    all_payment_methods: List[str]
    summary: PaymentMethodTotals


class PaymentMethodTransactions(CamelModel):
    payment_method: str
    period: StatsPeriod
    count: int
    total_amount_due: Decimal
    total_amount_paid: Decimal
    total_remaining_balance: Decimal
    data: List[SaleResponse]
