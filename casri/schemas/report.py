# schemas/report.py

from datetime import date
from decimal import Decimal
from typing import List, Optional

from casri.schemas.common import CamelModel


class PeriodTotals(CamelModel):
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal


class PeriodCounts(CamelModel):
    sales: int
    expenses: int
    purchases: int


class PeriodReportResponse(CamelModel):
    start_date: date
    end_date: date
    totals: PeriodTotals
    counts: PeriodCounts
    total_sales_collected: Decimal
    total_receivable: Decimal
    total_expense_amount: Decimal
    total_purchase_amount: Decimal


class MonthBreakdown(CamelModel):
    month: int
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal


class TopProduct(CamelModel):
    product_id: Optional[int]
    product_name: str
    total_sold: int
    total_revenue: Decimal


class YearlyReportResponse(PeriodReportResponse):
    year: int
    months: List[MonthBreakdown]
    top_products: List[TopProduct]


class SalesReportResponse(CamelModel):
    total_sales: Decimal
    total_cost: Decimal
    total_profit: Decimal
    profit_margin_percentage: Decimal
    total_orders: int
    total_items_sold: int
    start_date: date
    end_date: date
