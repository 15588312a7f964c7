# casri/services/expenses.py
#
# Expenses are a third ledger over the same payment-state rules: an amount
# owed to a supplier of services, paid down over time.

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from casri.core.errors import AlreadySettled, NotFound
from casri.core.money import to_money
from casri.core.payment_state import (
    LedgerState,
    PaymentStatus,
    SETTLED_STATUSES,
    apply_payment,
    initial_state,
    refresh_status,
)
from casri.models.expenses import Expense
from casri.models.users import User
from casri.schemas.expense import ExpenseCreate, ExpenseUpdate
from casri.services.transaction import atomic

logger = logging.getLogger("casri")


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def _lock_expense(db: Session, expense_id: int) -> Expense:
    expense = (
        db.query(Expense)
        .filter(Expense.id == expense_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not expense:
        raise NotFound("Expense", expense_id)

    return expense


def create_expense(db: Session, expense_data: ExpenseCreate, user: User, now: Optional[datetime] = None) -> Expense:
    state = initial_state(expense_data.amount_due, expense_data.amount_paid, expense_data.due_date, now)

    expense = Expense(
        user_id=user.id,
        client_name=expense_data.client_name,
        client_phone=expense_data.client_phone,
        expense_type=_value(expense_data.expense_type),
        payment_method=_value(expense_data.payment_method),
        description=expense_data.description,
        amount_due=to_money(expense_data.amount_due),
        amount_paid=state.amount_paid,
        balance=state.remaining_balance,
        status=state.status.value,
        due_date=expense_data.due_date,
    )

    with atomic(db):
        db.add(expense)

    db.refresh(expense)

    logger.info(f"Expense {expense.id} recorded: {expense.expense_type} due={expense.amount_due}")

    return expense


def pay_expense(db: Session, expense_id: int, amount, now: Optional[datetime] = None) -> Expense:
    with atomic(db):
        expense = _lock_expense(db, expense_id)

        outcome = apply_payment(
            LedgerState(
                amount_due=expense.amount_due,
                amount_paid=expense.amount_paid,
                status=PaymentStatus(expense.status),
                due_date=expense.due_date,
            ),
            amount,
            now,
        )

        expense.amount_paid = outcome.amount_paid
        expense.balance = outcome.remaining_balance
        expense.status = outcome.status.value

    db.refresh(expense)

    logger.info(f"Expense {expense_id} paid down to balance {expense.balance}")

    return expense


def update_expense(db: Session, expense_id: int, expense_data: ExpenseUpdate, now: Optional[datetime] = None) -> Expense:
    changes = expense_data.model_dump(exclude_unset=True)

    with atomic(db):
        expense = _lock_expense(db, expense_id)

        if PaymentStatus(expense.status) in SETTLED_STATUSES:
            raise AlreadySettled("Settled expenses cannot be modified")

        for field, value in changes.items():
            if field in ("expense_type", "payment_method"):
                # NOT NULL columns: an explicit null leaves them as they are
                if value is not None:
                    setattr(expense, field, _value(value))
                continue
            setattr(expense, field, value)

        # A moved due date can flip PENDING <-> OVERDUE
        expense.status = refresh_status(
            LedgerState(
                amount_due=expense.amount_due,
                amount_paid=expense.amount_paid,
                status=PaymentStatus(expense.status),
                due_date=expense.due_date,
            ),
            now,
        ).value

    db.refresh(expense)
    return expense


def delete_expense(db: Session, expense_id: int) -> int:
    with atomic(db):
        expense = _lock_expense(db, expense_id)
        db.delete(expense)

    logger.warning(f"Expense {expense_id} deleted")

    return expense_id


def get_expense(db: Session, expense_id: int) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id).first()

    if not expense:
        raise NotFound("Expense", expense_id)

    return expense


def list_expenses(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    expense_type: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    filters = []

    if start_date:
        filters.append(Expense.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))

    if end_date:
        filters.append(Expense.created_at <= datetime.combine(end_date, time.max, tzinfo=timezone.utc))

    if expense_type:
        filters.append(Expense.expense_type == _value(expense_type))

    if status:
        filters.append(Expense.status == _value(status))

    expenses = (
        db.query(Expense)
        .filter(*filters)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    count, total_due, total_paid, total_balance = (
        db.query(
            func.count(Expense.id),
            func.coalesce(func.sum(Expense.amount_due), 0),
            func.coalesce(func.sum(Expense.amount_paid), 0),
            func.coalesce(func.sum(Expense.balance), 0),
        )
        .filter(*filters)
        .one()
    )

    return {
        "data": expenses,
        "total": count,
        "page": page,
        "limit": limit,
        "summary": {
            "total_amount_due": to_money(total_due),
            "total_amount_paid": to_money(total_paid),
            "total_balance": to_money(total_balance),
            "count": count,
        },
    }
