# =========================================================
# SALES LEDGER
#
# - create_sale: stock decrement + sale row + line items + first
#   payment-history row, in one transaction
# - collect_payment: row-locked incremental payment
# - delete_sale: restores every line's stock
#
# Balance and status arithmetic lives in core.payment_state
# =========================================================

import logging
import secrets
import time as clock
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from casri.core.constants import PaymentMethod, StatsPeriod, UserRole
from casri.core.errors import AlreadySettled, NotFound, ValidationError
from casri.core.money import ZERO, money_sum, percent_of, to_money
from casri.core.payment_state import (
    MANUAL_STATUSES,
    LedgerState,
    PaymentStatus,
    SETTLED_STATUSES,
    apply_payment,
    derive_status,
    initial_state,
    tender,
)
from casri.models.payment_history import PaymentHistory
from casri.models.sale_items import SaleItem
from casri.models.sales import Sale
from casri.models.users import User
from casri.schemas.sale import SaleCreate, SaleUpdate
from casri.services.stock import decrement_stock, increment_stock, lock_product
from casri.services.transaction import atomic

logger = logging.getLogger("casri")


@dataclass(frozen=True)
class LineAmounts:
    item_total: Decimal
    item_discount: Decimal
    item_net: Decimal


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount_total: Decimal
    grand_total: Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def _naive(value: datetime) -> datetime:
    # SQLite hands back naive UTC, PostgreSQL aware
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def generate_sale_number() -> str:
    return f"SALE-{int(clock.time() * 1000)}-{secrets.randbelow(1000):03d}"


def line_amounts(selling_price, quantity: int, discount_percent=0) -> LineAmounts:
    item_total = to_money(to_money(selling_price) * quantity)
    item_discount = percent_of(discount_percent, item_total)
    return LineAmounts(item_total, item_discount, item_total - item_discount)


def calculate_totals(item_totals, discount_percentage=0, discount_amount=None) -> SaleTotals:
    """
    Sale-level totals. A flat ``discount_amount`` wins over
    ``discount_percentage`` when both are given.
    """
    subtotal = ZERO
    for item_total in item_totals:
        subtotal += to_money(item_total)

    if discount_amount is not None and to_money(discount_amount) > ZERO:
        discount_total = to_money(discount_amount)
    elif discount_percentage and Decimal(str(discount_percentage)) > 0:
        discount_total = percent_of(discount_percentage, subtotal)
    else:
        discount_total = ZERO

    if discount_total > subtotal:
        raise ValidationError("Discount cannot exceed the sale subtotal")

    return SaleTotals(subtotal, discount_total, subtotal - discount_total)


def _sale_timestamp(sale_date: Optional[date], now: datetime) -> datetime:
    if sale_date is None or sale_date == now.date():
        return now

    if sale_date > now.date():
        raise ValidationError("Sale date cannot be in the future")

    return datetime.combine(sale_date, time.min, tzinfo=timezone.utc)


def _ledger_state(sale: Sale) -> LedgerState:
    return LedgerState(
        amount_due=sale.amount_due,
        amount_paid=sale.amount_paid,
        status=PaymentStatus(sale.status),
        due_date=sale.due_date,
    )


def _lock_sale(db: Session, sale_id: int) -> Sale:
    sale = (
        db.query(Sale)
        .filter(Sale.id == sale_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not sale:
        raise NotFound("Sale", sale_id)

    return sale


# =========================================================
# CREATE
# =========================================================
def create_sale(db: Session, sale_data: SaleCreate, user: User, now: Optional[datetime] = None) -> Sale:
    now = now or _utcnow()

    if not sale_data.products:
        raise ValidationError("At least one product is required")

    if sale_data.request_id:
        existing_sale = (
            db.query(Sale)
            .filter(Sale.user_id == user.id, Sale.request_id == sale_data.request_id)
            .first()
        )
        if existing_sale:
            return existing_sale

    amount_due = to_money(sale_data.amount_due)
    change = ZERO

    if sale_data.amount_tendered is not None:
        amount_paid, change = tender(amount_due, sale_data.amount_tendered)
    else:
        amount_paid = to_money(sale_data.amount_paid or 0)

    state = initial_state(amount_due, amount_paid, sale_data.due_date, now)
    created_at = _sale_timestamp(sale_data.sale_date, now)
    method = _value(sale_data.payment_method)

    with atomic(db):
        # Every product is locked up front, in ascending id order
        products = {
            product_id: lock_product(db, product_id)
            for product_id in sorted({line.product_id for line in sale_data.products})
        }

        items = []
        total_quantity = 0

        for line in sale_data.products:
            product = products[line.product_id]
            decrement_stock(product, line.quantity)

            amounts = line_amounts(line.selling_price, line.quantity, line.discount)
            total_quantity += line.quantity

            items.append(
                SaleItem(
                    product_id=product.id,
                    name=product.name,
                    quantity=line.quantity,
                    selling_price=to_money(line.selling_price),
                    discount=line.discount,
                    item_total=amounts.item_total,
                    item_discount=amounts.item_discount,
                    item_net=amounts.item_net,
                )
            )

        totals = calculate_totals(
            [item.item_total for item in items],
            sale_data.discount_percentage,
            sale_data.discount_amount,
        )

        if state.amount_paid >= amount_due:
            opening_note = "Full payment"
        elif state.amount_paid > ZERO:
            opening_note = "Partial payment"
        else:
            opening_note = "Sale opened unpaid"

        sale = Sale(
            sale_number=generate_sale_number(),
            user_id=user.id,
            customer_name=sale_data.customer_name or None,
            customer_phone=sale_data.customer_phone or None,
            notes=sale_data.notes or None,
            subtotal=totals.subtotal,
            discount_percentage=sale_data.discount_percentage,
            discount_amount=totals.discount_total,
            grand_total=totals.grand_total,
            amount_due=amount_due,
            amount_paid=state.amount_paid,
            remaining_balance=state.remaining_balance,
            change_amount=change,
            payment_method=method,
            status=state.status.value,
            total_quantity=total_quantity,
            due_date=sale_data.due_date,
            request_id=sale_data.request_id,
            created_at=created_at,
            items=items,
            payments=[
                PaymentHistory(
                    amount=state.amount_paid,
                    payment_method=method,
                    collected_by_id=user.id,
                    notes=opening_note,
                )
            ],
        )
        db.add(sale)
        db.flush()

    db.refresh(sale)

    logger.info(
        f"Sale {sale.sale_number} created by user {user.id}: "
        f"due={sale.amount_due} paid={sale.amount_paid} status={sale.status}"
    )

    return sale


# =========================================================
# COLLECT PAYMENT
# =========================================================
def collect_payment(
    db: Session,
    sale_id: int,
    amount,
    user: User,
    payment_method=PaymentMethod.CASH,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Sale:
    method = _value(payment_method)

    with atomic(db):
        # Row lock serializes concurrent collections against the same sale
        sale = _lock_sale(db, sale_id)

        outcome = apply_payment(_ledger_state(sale), amount, now)
        collected = outcome.amount_paid - to_money(sale.amount_paid)

        sale.amount_paid = outcome.amount_paid
        sale.remaining_balance = outcome.remaining_balance
        sale.status = outcome.status.value

        db.add(
            PaymentHistory(
                sale_id=sale.id,
                amount=collected,
                payment_method=method,
                collected_by_id=user.id,
                notes=notes or f"Payment added via {method.lower()}",
            )
        )

    db.refresh(sale)

    logger.info(
        f"Payment of {collected} collected on sale {sale.sale_number}: "
        f"remaining={sale.remaining_balance} status={sale.status}"
    )

    return sale


# =========================================================
# ADMINISTRATIVE EDITS
# =========================================================
def update_sale(db: Session, sale_id: int, sale_data: SaleUpdate, now: Optional[datetime] = None) -> Sale:
    changes = sale_data.model_dump(exclude_unset=True)

    with atomic(db):
        sale = _lock_sale(db, sale_id)

        if PaymentStatus(sale.status) in SETTLED_STATUSES:
            raise AlreadySettled(
                f"{sale.status.capitalize()} sales cannot be modified. Create a refund instead."
            )

        new_status = changes.pop("status", None)
        if new_status is not None and new_status != PaymentStatus.CANCELLED:
            raise ValidationError("Only CANCELLED can be set manually; other statuses follow the amounts")

        for field in ("customer_name", "customer_phone", "notes", "due_date"):
            if field in changes:
                setattr(sale, field, changes[field])

        if changes.get("payment_method") is not None:
            sale.payment_method = _value(changes["payment_method"])

        if new_status == PaymentStatus.CANCELLED:
            sale.status = PaymentStatus.CANCELLED.value
        else:
            sale.status = derive_status(
                sale.amount_due,
                sale.amount_paid,
                sale.due_date,
                now,
            ).value

    db.refresh(sale)
    return sale


def refund_sale(db: Session, sale_id: int, notes: Optional[str] = None) -> Sale:
    """Move a paid (or part-paid) sale to REFUNDED. Stock is not touched."""
    with atomic(db):
        sale = _lock_sale(db, sale_id)
        status = PaymentStatus(sale.status)

        if status in MANUAL_STATUSES:
            raise AlreadySettled(f"Sale is already {status.value.lower()}")

        if to_money(sale.amount_paid) <= ZERO:
            raise ValidationError("Nothing has been paid on this sale; cancel it instead")

        sale.status = PaymentStatus.REFUNDED.value
        if notes:
            sale.notes = f"{sale.notes}\n{notes}" if sale.notes else notes

    db.refresh(sale)

    logger.info(f"Sale {sale.sale_number} refunded")

    return sale


# =========================================================
# DELETE
# =========================================================
def delete_sale(db: Session, sale_id: int) -> int:
    with atomic(db):
        sale = _lock_sale(db, sale_id)

        for item in sorted(sale.items, key=lambda item: item.product_id):
            product = lock_product(db, item.product_id)
            increment_stock(product, item.quantity)

        sale_number = sale.sale_number

        # Line items and payment history go with the sale (delete-orphan)
        db.delete(sale)

    logger.warning(f"Sale {sale_number} deleted and stock restored")

    return sale_id


# =========================================================
# READS
# =========================================================
def get_sale(db: Session, sale_id: int) -> Sale:
    sale = (
        db.query(Sale)
        .options(selectinload(Sale.items), selectinload(Sale.payments))
        .filter(Sale.id == sale_id)
        .first()
    )

    if not sale:
        raise NotFound("Sale", sale_id)

    return sale


def _day_bounds(start_date: date, end_date: date):
    return (
        datetime.combine(start_date, time.min),
        datetime.combine(end_date, time.max),
    )


def list_sales(
    db: Session,
    user: User,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    payment_method: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    filters = []

    # Staff below ADMIN only see their own sales
    if user.role != UserRole.ADMIN.value:
        filters.append(Sale.user_id == user.id)

    if start_date:
        filters.append(Sale.created_at >= datetime.combine(start_date, time.min))

    if end_date:
        filters.append(Sale.created_at <= datetime.combine(end_date, time.max))

    if payment_method:
        filters.append(Sale.payment_method == _value(payment_method))

    if status:
        filters.append(Sale.status == _value(status))

    sales = (
        db.query(Sale)
        .options(selectinload(Sale.items), selectinload(Sale.payments))
        .filter(*filters)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    total = db.query(func.count(Sale.id)).filter(*filters).scalar()

    sums = (
        db.query(
            func.coalesce(func.sum(Sale.amount_due), 0),
            func.coalesce(func.sum(Sale.amount_paid), 0),
            func.coalesce(func.sum(Sale.remaining_balance), 0),
            func.coalesce(func.sum(Sale.grand_total), 0),
        )
        .filter(*filters)
        .one()
    )

    return {
        "data": sales,
        "page": page,
        "limit": limit,
        "total": total,
        "totals": {
            "total_amount_due": to_money(sums[0]),
            "total_amount_paid": to_money(sums[1]),
            "total_remaining_balance": to_money(sums[2]),
            "total_sales_value": to_money(sums[3]),
        },
    }


def mark_overdue_sales(db: Session, now: Optional[datetime] = None) -> int:
    """Flag unpaid sales whose due date has passed. Returns how many changed."""
    now = now or _utcnow()

    with atomic(db):
        candidates = (
            db.query(Sale)
            .filter(
                Sale.status == PaymentStatus.PENDING.value,
                Sale.due_date.isnot(None),
                Sale.due_date < now.date(),
            )
            .with_for_update()
            .all()
        )

        changed = 0
        for sale in candidates:
            status = derive_status(sale.amount_due, sale.amount_paid, sale.due_date, now, current=sale.status)
            if status.value != sale.status:
                sale.status = status.value
                changed += 1

    if changed:
        logger.info(f"{changed} sale(s) marked overdue")

    return changed


def daily_summary(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    now = now or _utcnow()
    start_dt, end_dt = _day_bounds(now.date(), now.date())

    sales = (
        db.query(Sale)
        .filter(Sale.user_id == user.id, Sale.created_at.between(start_dt, end_dt))
        .order_by(Sale.created_at.desc())
        .all()
    )

    def _bucket():
        return {"count": 0, "amount_due": ZERO, "amount_paid": ZERO, "remaining_balance": ZERO}

    by_method: dict = {}
    by_status: dict = {}

    for sale in sales:
        for key, groups in ((sale.payment_method.lower(), by_method), (sale.status.lower(), by_status)):
            bucket = groups.setdefault(key, _bucket())
            bucket["count"] += 1
            bucket["amount_due"] += to_money(sale.amount_due)
            bucket["amount_paid"] += to_money(sale.amount_paid)
            bucket["remaining_balance"] += to_money(sale.remaining_balance)

    return {
        "day": now.date(),
        "total_sales": len(sales),
        "total_amount_due": money_sum(s.amount_due for s in sales),
        "total_amount_paid": money_sum(s.amount_paid for s in sales),
        "total_remaining_balance": money_sum(s.remaining_balance for s in sales),
        "total_items": sum(s.total_quantity for s in sales),
        "total_discount": money_sum(s.discount_amount for s in sales),
        "sales_by_payment_method": by_method,
        "sales_by_status": by_status,
    }


# =========================================================
# PAYMENT METHOD BREAKDOWN
# =========================================================
def period_start(period, now: datetime) -> datetime:
    """Start of a reporting window: today, the last 7 days, or this month."""
    today = datetime.combine(now.date(), time.min)
    period = StatsPeriod(period)

    if period == StatsPeriod.WEEK:
        return today - timedelta(days=6)
    if period == StatsPeriod.MONTH:
        return today.replace(day=1)
    return today


def _method_buckets(sales) -> dict:
    buckets = {
        method.value.lower(): {
            "count": 0,
            "total_amount_due": ZERO,
            "total_amount_paid": ZERO,
            "total_sales": ZERO,
            "total_remaining_balance": ZERO,
        }
        for method in PaymentMethod
    }

    for sale in sales:
        bucket = buckets[sale.payment_method.lower()]
        bucket["count"] += 1
        bucket["total_amount_due"] += to_money(sale.amount_due)
        bucket["total_amount_paid"] += to_money(sale.amount_paid)
        bucket["total_sales"] += to_money(sale.grand_total)
        bucket["total_remaining_balance"] += to_money(sale.remaining_balance)

    return buckets


def payment_method_stats(db: Session, user: User, now: Optional[datetime] = None) -> dict:
    """The user's own sales per payment method for today, the week and the month."""
    now = now or _utcnow()
    end_dt = datetime.combine(now.date(), time.max)
    starts = {period: period_start(period, now) for period in StatsPeriod}

    sales = (
        db.query(Sale)
        .filter(
            Sale.user_id == user.id,
            Sale.created_at >= min(starts.values()),
            Sale.created_at <= end_dt,
        )
        .all()
    )

    windows = {
        period: [sale for sale in sales if _naive(sale.created_at) >= start]
        for period, start in starts.items()
    }

    return {
        "today": _method_buckets(windows[StatsPeriod.TODAY]),
        "week": _method_buckets(windows[StatsPeriod.WEEK]),
        "month": _method_buckets(windows[StatsPeriod.MONTH]),
        "all_payment_methods": [method.value.lower() for method in PaymentMethod],
        "summary": {
            "today_total": money_sum(s.amount_paid for s in windows[StatsPeriod.TODAY]),
            "weekly_total": money_sum(s.amount_paid for s in windows[StatsPeriod.WEEK]),
            "monthly_total": money_sum(s.amount_paid for s in windows[StatsPeriod.MONTH]),
        },
    }


def payment_method_transactions(
    db: Session,
    user: User,
    payment_method,
    period=StatsPeriod.TODAY,
    now: Optional[datetime] = None,
) -> dict:
    now = now or _utcnow()
    method = PaymentMethod(payment_method)

    sales = (
        db.query(Sale)
        .options(selectinload(Sale.items), selectinload(Sale.payments))
        .filter(
            Sale.user_id == user.id,
            Sale.payment_method == method.value,
            Sale.created_at >= period_start(period, now),
            Sale.created_at <= datetime.combine(now.date(), time.max),
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )

    return {
        "payment_method": method.value.lower(),
        "period": StatsPeriod(period).value,
        "count": len(sales),
        "total_amount_due": money_sum(s.amount_due for s in sales),
        "total_amount_paid": money_sum(s.amount_paid for s in sales),
        "total_remaining_balance": money_sum(s.remaining_balance for s in sales),
        "data": sales,
    }
