# casri/routers/receivables.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_staff_user
from casri.core.constants import PaymentMethod
from casri.core.payment_state import PaymentStatus
from casri.schemas.sale import (
    PaymentCreate,
    ReceivableListResponse,
    ReceivableSummary,
    SaleResponse,
    SaleUpdate,
)
from casri.services import receivables as receivables_service
from casri.services import sales as sales_service

router = APIRouter(prefix="/receivables", tags=["Receivables"])


@router.get("", response_model=ReceivableListResponse)
def list_receivables(
    receivable_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    # Flag anything that went past its due date since the last look
    sales_service.mark_overdue_sales(db)

    return receivables_service.list_receivables(
        db,
        status=receivable_status,
        payment_method=payment_method,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/summary", response_model=ReceivableSummary)
def receivables_summary(
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    sales_service.mark_overdue_sales(db)
    return receivables_service.receivables_summary(db)


@router.get("/{sale_id}", response_model=SaleResponse)
def get_receivable(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.get_sale(db, sale_id)


@router.put("/{sale_id}", response_model=SaleResponse)
def update_receivable(
    sale_id: int,
    sale_data: SaleUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return sales_service.update_sale(db, sale_id, sale_data)


@router.post("/{sale_id}/collect", response_model=SaleResponse)
def collect_receivable(
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
