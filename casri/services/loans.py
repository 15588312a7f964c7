# casri/services/loans.py
#
# Loans: goods or cash handed out on trust to a named person. Same
# payment-state rules as expenses, plus a paid date stamped when the
# balance reaches zero.

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from casri.core.errors import AlreadySettled, NotFound
from casri.core.money import ZERO, to_money
from casri.core.payment_state import (
    LedgerState,
    PaymentStatus,
    SETTLED_STATUSES,
    apply_payment,
    initial_state,
    refresh_status,
)
from casri.models.loans import Loan
from casri.models.users import User
from casri.schemas.loan import LoanCreate, LoanUpdate
from casri.services.transaction import atomic

logger = logging.getLogger("casri")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ledger_state(loan: Loan) -> LedgerState:
    return LedgerState(
        amount_due=loan.amount_due,
        amount_paid=loan.amount_paid,
        status=PaymentStatus(loan.status),
        due_date=loan.due_date,
    )


def _lock_loan(db: Session, loan_id: int) -> Loan:
    loan = (
        db.query(Loan)
        .filter(Loan.id == loan_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not loan:
        raise NotFound("Loan", loan_id)

    return loan


def create_loan(db: Session, loan_data: LoanCreate, user: User, now: Optional[datetime] = None) -> Loan:
    now = now or _utcnow()
    state = initial_state(loan_data.amount_due, loan_data.amount_paid, loan_data.due_date, now)

    loan = Loan(
        user_id=user.id,
        person_name=loan_data.person_name.strip(),
        product_name=(loan_data.product_name or "").strip() or None,
        quantity=loan_data.quantity,
        description=loan_data.description,
        amount_due=to_money(loan_data.amount_due),
        amount_paid=state.amount_paid,
        balance=state.remaining_balance,
        status=state.status.value,
        due_date=loan_data.due_date,
        loan_date=loan_data.loan_date or now.date(),
        paid_date=now if state.status == PaymentStatus.COMPLETED else None,
    )

    with atomic(db):
        db.add(loan)

    db.refresh(loan)

    logger.info(f"Loan {loan.id} to {loan.person_name} recorded: due={loan.amount_due}")

    return loan


def _settle(db: Session, loan_id: int, amount, now: Optional[datetime]) -> Loan:
    now = now or _utcnow()

    with atomic(db):
        loan = _lock_loan(db, loan_id)

        if amount is None:
            # Pay off whatever is left
            amount = to_money(loan.amount_due) - to_money(loan.amount_paid)
            if amount <= ZERO or PaymentStatus(loan.status) in SETTLED_STATUSES:
                raise AlreadySettled("Loan is already paid")

        outcome = apply_payment(_ledger_state(loan), amount, now)

        loan.amount_paid = outcome.amount_paid
        loan.balance = outcome.remaining_balance
        loan.status = outcome.status.value
        if outcome.status == PaymentStatus.COMPLETED:
            loan.paid_date = now

    db.refresh(loan)

    logger.info(f"Loan {loan_id} paid down to balance {loan.balance}")

    return loan


def pay_loan(db: Session, loan_id: int, amount, now: Optional[datetime] = None) -> Loan:
    return _settle(db, loan_id, amount, now)


def mark_loan_paid(db: Session, loan_id: int, now: Optional[datetime] = None) -> Loan:
    return _settle(db, loan_id, None, now)


def update_loan(db: Session, loan_id: int, loan_data: LoanUpdate, now: Optional[datetime] = None) -> Loan:
    changes = loan_data.model_dump(exclude_unset=True)

    with atomic(db):
        loan = _lock_loan(db, loan_id)

        if PaymentStatus(loan.status) in SETTLED_STATUSES:
            raise AlreadySettled("Paid loans cannot be modified")

        for field, value in changes.items():
            if isinstance(value, str):
                value = value.strip() or None
            # NOT NULL columns: an explicit null leaves them as they are
            if value is None and field in ("person_name", "quantity", "loan_date"):
                continue
            setattr(loan, field, value)

        loan.status = refresh_status(_ledger_state(loan), now).value

    db.refresh(loan)
    return loan


def delete_loan(db: Session, loan_id: int) -> int:
    with atomic(db):
        loan = _lock_loan(db, loan_id)
        db.delete(loan)

    logger.warning(f"Loan {loan_id} deleted")

    return loan_id


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).first()

    if not loan:
        raise NotFound("Loan", loan_id)

    return loan


def _is_paid_filter(is_paid: bool):
    if is_paid:
        return Loan.status == PaymentStatus.COMPLETED.value
    return Loan.status != PaymentStatus.COMPLETED.value


def list_loans(
    db: Session,
    is_paid: Optional[bool] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    person_name: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    filters = []

    if is_paid is not None:
        filters.append(_is_paid_filter(is_paid))

    if status:
        filters.append(Loan.status == getattr(status, "value", status))

    if start_date:
        filters.append(Loan.loan_date >= start_date)

    if end_date:
        filters.append(Loan.loan_date <= end_date)

    if person_name and person_name.strip():
        filters.append(Loan.person_name.ilike(f"%{person_name.strip()}%"))

    loans = (
        db.query(Loan)
        .filter(*filters)
        .order_by(Loan.loan_date.desc(), Loan.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    count, total_due, total_paid, total_balance = (
        db.query(
            func.count(Loan.id),
            func.coalesce(func.sum(Loan.amount_due), 0),
            func.coalesce(func.sum(Loan.amount_paid), 0),
            func.coalesce(func.sum(Loan.balance), 0),
        )
        .filter(*filters)
        .one()
    )

    return {
        "data": loans,
        "total": count,
        "page": page,
        "limit": limit,
        "totals": {
            "total_amount": to_money(total_due),
            "unpaid_amount": to_money(total_balance),
            "paid_amount": to_money(total_paid),
        },
    }


def loan_stats(db: Session, year: Optional[int] = None, now: Optional[datetime] = None) -> dict:
    """All-time totals plus a month-by-month breakdown of one year."""
    year = year or (now or _utcnow()).year

    paid = case((Loan.status == PaymentStatus.COMPLETED.value, 1), else_=0)

    count, paid_count, total_due, total_paid, total_balance = (
        db.query(
            func.count(Loan.id),
            func.coalesce(func.sum(paid), 0),
            func.coalesce(func.sum(Loan.amount_due), 0),
            func.coalesce(func.sum(Loan.amount_paid), 0),
            func.coalesce(func.sum(Loan.balance), 0),
        )
        .one()
    )

    months = {
        month: {"month": month, "count": 0, "total_amount": ZERO, "unpaid_amount": ZERO}
        for month in range(1, 13)
    }

    rows = (
        db.query(Loan.loan_date, Loan.amount_due, Loan.balance)
        .filter(Loan.loan_date >= date(year, 1, 1), Loan.loan_date < date(year + 1, 1, 1))
        .all()
    )
    for loan_date, amount_due, balance in rows:
        bucket = months[loan_date.month]
        bucket["count"] += 1
        bucket["total_amount"] += to_money(amount_due)
        bucket["unpaid_amount"] += to_money(balance)

    return {
        "year": year,
        "total_loans": count,
        "paid_loans": int(paid_count),
        "unpaid_loans": count - int(paid_count),
        "total_amount": to_money(total_due),
        "paid_amount": to_money(total_paid),
        "unpaid_amount": to_money(total_balance),
        "monthly": list(months.values()),
    }
