# casri/routers/expenses.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_staff_user
from casri.core.constants import ExpenseType
from casri.core.payment_state import PaymentStatus
from casri.schemas.common import MessageResponse
from casri.schemas.expense import (
    ExpenseCreate,
    ExpenseListResponse,
    ExpensePayment,
    ExpenseResponse,
    ExpenseUpdate,
)
from casri.services import expenses as expenses_service

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return expenses_service.create_expense(db, expense_data, current_user)


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    expense_type: Optional[ExpenseType] = Query(None, alias="expenseType"),
    expense_status: Optional[PaymentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return expenses_service.list_expenses(
        db,
        start_date=start_date,
        end_date=end_date,
        expense_type=expense_type,
        status=expense_status,
        page=page,
        limit=limit,
    )


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return expenses_service.get_expense(db, expense_id)


@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return expenses_service.update_expense(db, expense_id, expense_data)


@router.post("/{expense_id}/pay", response_model=ExpenseResponse)
def pay_expense(
    expense_id: int,
    payment: ExpensePayment,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return expenses_service.pay_expense(db, expense_id, payment.amount)


@router.delete("/{expense_id}", response_model=MessageResponse)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    expenses_service.delete_expense(db, expense_id)
    return {"message": "Expense deleted successfully"}
