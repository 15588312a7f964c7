# casri/services/receivables.py
#
# Accounts receivable is a view over sales that still carry a balance.
# Collection itself is services.sales.collect_payment.

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from casri.core.money import ZERO, money_sum, to_money
from casri.core.payment_state import OPEN_STATUSES
from casri.models.sales import Sale

OPEN_STATUS_VALUES = [status.value for status in OPEN_STATUSES]


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def _outstanding_filters(status=None, payment_method=None, search: Optional[str] = None) -> list:
    filters = [Sale.remaining_balance > 0]

    if status:
        filters.append(Sale.status == _value(status))
    else:
        filters.append(Sale.status.in_(OPEN_STATUS_VALUES))

    if payment_method:
        filters.append(Sale.payment_method == _value(payment_method))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Sale.customer_name.ilike(pattern),
                Sale.customer_phone.ilike(pattern),
                Sale.sale_number.ilike(pattern),
            )
        )

    return filters


def list_receivables(
    db: Session,
    status=None,
    payment_method=None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    filters = _outstanding_filters(status, payment_method, search)

    query = db.query(Sale).filter(*filters)
    total = query.count()

    receivables = (
        query
        .options(selectinload(Sale.items), selectinload(Sale.payments))
        # Oldest debts first
        .order_by(Sale.due_date.is_(None), Sale.due_date.asc(), Sale.created_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {"data": receivables, "page": page, "limit": limit, "total": total}


def receivables_summary(db: Session) -> dict:
    receivables = db.query(Sale).filter(*_outstanding_filters()).all()

    def _bucket():
        return {"count": 0, "amount_due": ZERO, "amount_paid": ZERO, "remaining_balance": ZERO}

    by_status: dict = {}
    by_method: dict = {}

    for sale in receivables:
        for key, groups in ((sale.status.lower(), by_status), (sale.payment_method.lower(), by_method)):
            bucket = groups.setdefault(key, _bucket())
            bucket["count"] += 1
            bucket["amount_due"] += to_money(sale.amount_due)
            bucket["amount_paid"] += to_money(sale.amount_paid)
            bucket["remaining_balance"] += to_money(sale.remaining_balance)

    due_dates = [sale.due_date for sale in receivables if sale.due_date is not None]

    return {
        "total_receivables": len(receivables),
        "total_amount_due": money_sum(s.amount_due for s in receivables),
        "total_amount_paid": money_sum(s.amount_paid for s in receivables),
        "total_remaining_balance": money_sum(s.remaining_balance for s in receivables),
        "by_status": by_status,
        "by_payment_method": by_method,
        "oldest_due_date": min(due_dates) if due_dates else None,
    }
