# casri/routers/loans.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_staff_user
from casri.core.payment_state import PaymentStatus
from casri.schemas.common import MessageResponse
from casri.schemas.loan import (
    LoanCreate,
    LoanListResponse,
    LoanPayment,
    LoanResponse,
    LoanStats,
    LoanUpdate,
)
from casri.services import loans as loans_service

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def create_loan(
    loan_data: LoanCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.create_loan(db, loan_data, current_user)


@router.get("", response_model=LoanListResponse)
def list_loans(
    is_paid: Optional[bool] = Query(None, alias="isPaid"),
    loan_status: Optional[PaymentStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    person_name: Optional[str] = Query(None, alias="personName", max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.list_loans(
        db,
        is_paid=is_paid,
        status=loan_status,
        start_date=start_date,
        end_date=end_date,
        person_name=person_name,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=LoanStats)
def loan_stats(
    year: Optional[int] = Query(None, ge=2000, le=9999),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.loan_stats(db, year=year)


@router.get("/{loan_id}", response_model=LoanResponse)
def get_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.get_loan(db, loan_id)


@router.put("/{loan_id}", response_model=LoanResponse)
def update_loan(
    loan_id: int,
    loan_data: LoanUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.update_loan(db, loan_id, loan_data)


@router.post("/{loan_id}/pay", response_model=LoanResponse)
def pay_loan(
    loan_id: int,
    payment: LoanPayment,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.pay_loan(db, loan_id, payment.amount)


@router.post("/{loan_id}/mark-paid", response_model=LoanResponse)
def mark_loan_paid(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return loans_service.mark_loan_paid(db, loan_id)


@router.delete("/{loan_id}", response_model=MessageResponse)
def delete_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    loans_service.delete_loan(db, loan_id)
    return {"message": "Loan deleted successfully"}
