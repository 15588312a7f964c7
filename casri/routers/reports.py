# =========================================================
# REPORTS ROUTER
#
# - daily / monthly / yearly: income (sales) against expenses
#   (expense log + vendor purchases) for the period
# - sales-summary: revenue, cost of goods, profit and margin
# - export: the period's sales as an xlsx workbook
#
# Cancelled and refunded sales never count as income.
# Schema-safe: always returns Decimal (never None)
# =========================================================

import logging
from calendar import monthrange
from datetime import date, datetime, time, timezone
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from casri.database import get_db
from casri.core.auth import get_staff_user
from casri.core.errors import ValidationError
from casri.core.money import ZERO, to_money
from casri.core.payment_state import MANUAL_STATUSES
from casri.core.rate_limiter import limiter
from casri.models.expenses import Expense
from casri.models.products import Product
from casri.models.purchases import Purchase
from casri.models.sale_items import SaleItem
from casri.models.sales import Sale
from casri.schemas.report import (
    PeriodReportResponse,
    SalesReportResponse,
    YearlyReportResponse,
)

logger = logging.getLogger("casri")

router = APIRouter(prefix="/reports", tags=["Reports"])

EXCLUDED_STATUSES = [status.value for status in MANUAL_STATUSES]


def _bounds(start_date: date, end_date: date):
    return (
        datetime.combine(start_date, time.min),
        datetime.combine(end_date, time.max),
    )


def _validate_range(start_date: date, end_date: date):
    if start_date > end_date:
        raise ValidationError("startDate must not be after endDate")


def _income_filters(start_date: date, end_date: date) -> list:
    start_dt, end_dt = _bounds(start_date, end_date)
    return [
        Sale.created_at.between(start_dt, end_dt),
        Sale.status.notin_(EXCLUDED_STATUSES),
    ]


# =========================================================
# CORE PERIOD CALCULATION
# =========================================================
def _calculate_period(db: Session, start_date: date, end_date: date) -> dict:
    start_dt, end_dt = _bounds(start_date, end_date)
    sale_filters = _income_filters(start_date, end_date)

    sales_count, total_income, total_collected, total_receivable = (
        db.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.grand_total), 0),
            func.coalesce(func.sum(Sale.amount_paid), 0),
            func.coalesce(func.sum(Sale.remaining_balance), 0),
        )
        .filter(*sale_filters)
        .one()
    )

    expense_count, expense_amount = (
        db.query(func.count(Expense.id), func.coalesce(func.sum(Expense.amount_due), 0))
        .filter(Expense.created_at.between(start_dt, end_dt))
        .one()
    )

    purchase_count, purchase_amount = (
        db.query(func.count(Purchase.id), func.coalesce(func.sum(Purchase.total), 0))
        .filter(Purchase.purchase_date.between(start_dt, end_dt))
        .one()
    )

    total_income = to_money(total_income)
    expense_amount = to_money(expense_amount)
    purchase_amount = to_money(purchase_amount)
    total_expenses = expense_amount + purchase_amount

    return {
        "start_date": start_date,
        "end_date": end_date,
        "totals": {
            "total_income": total_income,
            "total_expenses": total_expenses,
            "balance": total_income - total_expenses,
        },
        "counts": {
            "sales": sales_count,
            "expenses": expense_count,
            "purchases": purchase_count,
        },
        "total_sales_collected": to_money(total_collected),
        "total_receivable": to_money(total_receivable),
        "total_expense_amount": expense_amount,
        "total_purchase_amount": purchase_amount,
    }


# =========================================================
# CORE SALES SUMMARY CALCULATION
# =========================================================
def _calculate_sales_summary(db: Session, start_date: date, end_date: date) -> dict:
    base_filter = _income_filters(start_date, end_date)

    total_sales = (
        db.query(func.coalesce(func.sum(Sale.grand_total), 0))
        .filter(*base_filter)
        .scalar()
    )

    total_orders = (
        db.query(func.count(Sale.id))
        .filter(*base_filter)
        .scalar()
    )

    total_items_sold = (
        db.query(func.coalesce(func.sum(SaleItem.quantity), 0))
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*base_filter)
        .scalar()
    )

    total_cost = (
        db.query(func.coalesce(func.sum(Product.cost * SaleItem.quantity), 0))
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*base_filter)
        .scalar()
    )

    total_sales = to_money(total_sales or 0)
    total_cost = to_money(total_cost or 0)
    total_profit = total_sales - total_cost

    if total_sales == 0:
        profit_margin_percentage = ZERO
    else:
        profit_margin_percentage = to_money(total_profit / total_sales * 100)

    return {
        "total_sales": total_sales,
        "total_cost": total_cost,
        "total_profit": total_profit,
        "profit_margin_percentage": profit_margin_percentage,
        "total_orders": total_orders,
        "total_items_sold": int(total_items_sold or 0),
        "start_date": start_date,
        "end_date": end_date,
    }


def _top_products(db: Session, start_date: date, end_date: date, limit: int = 10) -> list:
    rows = (
        db.query(
            SaleItem.product_id,
            SaleItem.name,
            func.coalesce(func.sum(SaleItem.quantity), 0).label("total_sold"),
            func.coalesce(func.sum(SaleItem.item_net), 0).label("total_revenue"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*_income_filters(start_date, end_date))
        .group_by(SaleItem.product_id, SaleItem.name)
        .order_by(func.sum(SaleItem.item_net).desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "product_id": row.product_id,
            "product_name": row.name,
            "total_sold": int(row.total_sold),
            "total_revenue": to_money(row.total_revenue),
        }
        for row in rows
    ]


# =========================================================
# PERIOD REPORTS
# =========================================================
@router.get("/daily/{report_date}", response_model=PeriodReportResponse)
def daily_report(
    report_date: date,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return _calculate_period(db, report_date, report_date)


@router.get("/monthly/{year}/{month}", response_model=PeriodReportResponse)
def monthly_report(
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    last_day = monthrange(year, month)[1]
    return _calculate_period(db, date(year, month, 1), date(year, month, last_day))


@router.get("/yearly/{year}", response_model=YearlyReportResponse)
def yearly_report(
    year: int = Path(..., ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    start_date, end_date = date(year, 1, 1), date(year, 12, 31)
    report = _calculate_period(db, start_date, end_date)

    months = []
    for month in range(1, 13):
        last_day = monthrange(year, month)[1]
        totals = _calculate_period(db, date(year, month, 1), date(year, month, last_day))["totals"]
        months.append({"month": month, **totals})

    report.update({
        "year": year,
        "months": months,
        "top_products": _top_products(db, start_date, end_date),
    })

    return report


# =========================================================
# SALES SUMMARY
# =========================================================
@router.get("/sales-summary", response_model=SalesReportResponse)
def sales_summary(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    today = datetime.now(timezone.utc).date()
    start_date = start_date or today
    end_date = end_date or today
    _validate_range(start_date, end_date)

    return _calculate_sales_summary(db, start_date, end_date)


# =========================================================
# EXPORT
# =========================================================
@router.get("/export")
@limiter.limit("10/minute")
def export_sales(
    request: Request,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    today = datetime.now(timezone.utc).date()
    start_date = start_date or today
    end_date = end_date or today
    _validate_range(start_date, end_date)

    start_dt, end_dt = _bounds(start_date, end_date)

    sales = (
        db.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.created_at.between(start_dt, end_dt))
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )

    logger.info(f"Exporting {len(sales)} sale(s) from {start_date} to {end_date}")

    return _build_excel(
        db=db,
        sales=sales,
        start_date=start_date,
        end_date=end_date,
        filename=f"sales_{start_date}_to_{end_date}.xlsx",
    )


# =========================================================
# EXCEL BUILDER
# =========================================================
def _build_excel(
    db: Session,
    sales: list[Sale],
    start_date: date,
    end_date: date,
    filename: str,
):
    workbook = Workbook()

    # =======================
    # SHEET 1 - RAW SALES
    # =======================
    sheet = workbook.active
    sheet.title = "Sales Data"

    sheet.append([
        "Date",
        "Sale Number",
        "Customer",
        "Product",
        "Quantity",
        "Unit Price",
        "Line Net",
        "Sale Total",
        "Amount Paid",
        "Balance",
        "Payment Method",
        "Status",
    ])

    for sale in sales:
        for item in sale.items:
            sheet.append([
                sale.created_at.strftime("%Y-%m-%d"),
                sale.sale_number,
                sale.customer_name or "",
                item.name,
                item.quantity,
                float(item.selling_price),
                float(item.item_net),
                float(sale.grand_total),
                float(sale.amount_paid),
                float(sale.remaining_balance),
                sale.payment_method,
                sale.status,
            ])

    # =======================
    # SHEET 2 - SUMMARY
    # =======================
    summary_data = _calculate_sales_summary(db, start_date, end_date)
    top_products = _top_products(db, start_date, end_date, limit=1)

    summary = workbook.create_sheet(title="Summary")

    summary.append(["Period", f"{start_date} to {end_date}"])
    summary.append([])
    summary.append(["Total Revenue", float(summary_data["total_sales"])])
    summary.append(["Total Cost", float(summary_data["total_cost"])])
    summary.append(["Total Profit", float(summary_data["total_profit"])])
    summary.append(["Profit Margin (%)", float(summary_data["profit_margin_percentage"])])
    summary.append(["Orders", summary_data["total_orders"]])
    summary.append(["Items Sold", summary_data["total_items_sold"]])
    summary.append(["Top Performing Product", top_products[0]["product_name"] if top_products else "N/A"])

    # =======================
    # RETURN FILE
    # =======================
    output = BytesIO()
    workbook.save(output)
    output.seek(0)

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
