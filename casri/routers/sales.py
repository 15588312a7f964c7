# =========================================================
# SALES ROUTER
#
# Thin HTTP layer over services.sales. Ledger errors raised by the
# service are rendered by the handlers registered in casri.main.
#
# - ADMIN / EMPLOYEE: create sales, collect payments, edit, refund
# - ADMIN only: hard delete (restores stock)
# =========================================================

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_current_user, get_staff_user
from casri.core.constants import PaymentMethod, StatsPeriod
from casri.core.payment_state import PaymentStatus
from casri.core.rate_limiter import limiter
from casri.models.products import Product
from casri.schemas.sale import (
    PaymentCreate,
    PaymentMethodStats,
    PaymentMethodTransactions,
    ProductSearchResult,
    RefundCreate,
    SaleCreate,
    SaleDeleteResponse,
    SaleListResponse,
    SaleResponse,
    SaleUpdate,
    TodaySummary,
)
from casri.services import sales as sales_service

router = APIRouter(prefix="/sales", tags=["Sales"])


# =========================================================
# CREATE SALE
# =========================================================
@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_sale(
    request: Request,
    sale_data: SaleCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.create_sale(db, sale_data, current_user)


# =========================================================
# LIST SALES
# =========================================================
@router.get("", response_model=SaleListResponse)
def list_sales(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    sale_status: Optional[PaymentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.list_sales(
        db,
        current_user,
        start_date=start_date,
        end_date=end_date,
        payment_method=payment_method,
        status=sale_status,
        page=page,
        limit=limit,
    )


# =========================================================
# TODAY'S SUMMARY
# =========================================================
@router.get("/summary/today", response_model=TodaySummary)
def today_summary(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.daily_summary(db, current_user)


# =========================================================
# PAYMENT METHOD BREAKDOWN
# =========================================================
@router.get("/payment-methods/stats", response_model=PaymentMethodStats)
def payment_method_stats(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.payment_method_stats(db, current_user)


@router.get("/payment-methods/{payment_method}/transactions", response_model=PaymentMethodTransactions)
def payment_method_transactions(
    payment_method: PaymentMethod,
    period: StatsPeriod = Query(StatsPeriod.TODAY),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.payment_method_transactions(db, current_user, payment_method, period)


# =========================================================
# PRODUCT LOOKUP FOR THE SALE SCREEN
# =========================================================
@router.get("/products/search", response_model=list[ProductSearchResult])
def search_products(
    q: str = Query("", max_length=100),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    query = db.query(Product).filter(Product.stock > 0)

    if q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(Product.name.ilike(pattern) | Product.barcode.ilike(pattern))

    return query.order_by(Product.name.asc()).limit(20).all()


# =========================================================
# SINGLE SALE
# =========================================================
@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.get_sale(db, sale_id)


@router.put("/{sale_id}", response_model=SaleResponse)
def update_sale(
    sale_id: int,
    sale_data: SaleUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.update_sale(db, sale_id, sale_data)


# =========================================================
# PAYMENTS
# =========================================================
@router.post("/{sale_id}/payments", response_model=SaleResponse)
def collect_payment(
    sale_id: int,
    payment: PaymentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.collect_payment(
        db,
        sale_id,
        payment.amount,
        current_user,
        payment_method=payment.payment_method,
        notes=payment.notes,
    )


@router.post("/{sale_id}/refund", response_model=SaleResponse)
def refund_sale(
    sale_id: int,
    refund: RefundCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.refund_sale(db, sale_id, refund.notes)


# =========================================================
# DELETE
# =========================================================
@router.delete("/{sale_id}", response_model=SaleDeleteResponse)
def delete_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    deleted_id = sales_service.delete_sale(db, sale_id)

    return {
        "message": "Sale deleted successfully and stock restored",
        "deleted_sale_id": deleted_id,
    }
