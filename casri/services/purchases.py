# =========================================================
# VENDOR PURCHASES LEDGER
#
# Mirror image of the sales ledger: stock goes up on create and back down
# on delete. Every mutation also moves the owning vendor's running
# aggregates (total_purchases, total_amount, balance) by delta inside the
# same transaction. reconcile_vendor re-derives them from scratch.
# =========================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from casri.core.errors import InsufficientStock, NotFound, ValidationError
from casri.core.money import ZERO, to_money
from casri.core.payment_state import LedgerState, PaymentStatus, apply_payment, initial_state
from casri.models.purchase_items import PurchaseItem
from casri.models.purchases import Purchase
from casri.models.users import User
from casri.models.vendors import Vendor
from casri.schemas.vendor import PurchaseCreate, PurchaseUpdate
from casri.services.stock import increment_stock, lock_product, lock_product_by_name
from casri.services.transaction import atomic

logger = logging.getLogger("casri")


@dataclass(frozen=True)
class VendorAggregates:
    total_purchases: int
    total_amount: Decimal
    balance: Decimal


@dataclass(frozen=True)
class Reconciliation:
    vendor: Vendor
    corrected: bool
    previous: VendorAggregates


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def lock_vendor(db: Session, vendor_id: int) -> Vendor:
    vendor = (
        db.query(Vendor)
        .filter(Vendor.id == vendor_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not vendor:
        raise NotFound("Vendor", vendor_id)

    return vendor


def _lock_purchase(db: Session, vendor_id: int, purchase_id: int) -> Purchase:
    purchase = (
        db.query(Purchase)
        .filter(Purchase.id == purchase_id, Purchase.vendor_id == vendor_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not purchase:
        raise NotFound("Purchase", purchase_id)

    return purchase


def _apply_vendor_delta(vendor: Vendor, purchases: int, amount, balance) -> None:
    vendor.total_purchases = (vendor.total_purchases or 0) + purchases
    vendor.total_amount = to_money(vendor.total_amount or 0) + to_money(amount)
    vendor.balance = to_money(vendor.balance or 0) + to_money(balance)


def _outstanding(purchase: Purchase) -> Decimal:
    return to_money(purchase.amount_due) - to_money(purchase.amount_paid)


# =========================================================
# CREATE
# =========================================================
def create_purchase(
    db: Session,
    vendor_id: int,
    purchase_data: PurchaseCreate,
    user: User,
    now: Optional[datetime] = None,
) -> Purchase:
    if not purchase_data.products:
        raise ValidationError("Products array is required and must not be empty")

    total = ZERO
    for line in purchase_data.products:
        total += to_money(to_money(line.unit_price) * line.quantity)

    amount_due = to_money(purchase_data.amount_due) if purchase_data.amount_due is not None else total
    state = initial_state(amount_due, purchase_data.amount_paid or 0, None, now)

    with atomic(db):
        vendor = lock_vendor(db, vendor_id)

        # Ids first, then names, each ascending
        by_id = {
            product_id: lock_product(db, product_id)
            for product_id in sorted({
                line.product_id for line in purchase_data.products if line.product_id is not None
            })
        }
        # Free-text lines only move stock when they name a catalog product
        by_name = {
            name: lock_product_by_name(db, name)
            for name in sorted({
                line.product_name.strip() for line in purchase_data.products if line.product_id is None
            })
        }

        items = []
        for line in purchase_data.products:
            if line.product_id is not None:
                product = by_id[line.product_id]
            else:
                product = by_name[line.product_name.strip()]

            if product is not None:
                increment_stock(product, line.quantity)

            items.append(
                PurchaseItem(
                    product_id=product.id if product is not None else None,
                    product_name=(line.product_name or "").strip() or product.name,
                    quantity=line.quantity,
                    unit_price=to_money(line.unit_price),
                    line_total=to_money(to_money(line.unit_price) * line.quantity),
                )
            )

        purchase = Purchase(
            vendor_id=vendor.id,
            user_id=user.id,
            total=total,
            amount_due=amount_due,
            amount_paid=state.amount_paid,
            remaining_balance=state.remaining_balance,
            payment_method=_value(purchase_data.payment_method),
            status=state.status.value,
            notes=purchase_data.notes or None,
            purchase_date=now or datetime.now(timezone.utc),
            items=items,
        )
        db.add(purchase)

        _apply_vendor_delta(vendor, 1, total, state.remaining_balance)
        db.flush()

    db.refresh(purchase)

    logger.info(
        f"Purchase {purchase.id} created for vendor {vendor_id}: "
        f"total={purchase.total} due={purchase.amount_due} paid={purchase.amount_paid}"
    )

    return purchase


# =========================================================
# UPDATE / PAY
# =========================================================
def update_purchase(
    db: Session,
    vendor_id: int,
    purchase_id: int,
    purchase_data: PurchaseUpdate,
    now: Optional[datetime] = None,
) -> Purchase:
    changes = purchase_data.model_dump(exclude_unset=True)

    with atomic(db):
        purchase = _lock_purchase(db, vendor_id, purchase_id)
        vendor = lock_vendor(db, vendor_id)

        if changes.get("amount") is not None:
            state = LedgerState(
                amount_due=purchase.amount_due,
                amount_paid=purchase.amount_paid,
                status=PaymentStatus(purchase.status),
            )
            outcome = apply_payment(state, changes["amount"], now)
            paid_now = outcome.amount_paid - to_money(purchase.amount_paid)

            purchase.amount_paid = outcome.amount_paid
            purchase.remaining_balance = outcome.remaining_balance
            purchase.status = outcome.status.value

            _apply_vendor_delta(vendor, 0, ZERO, -paid_now)

            logger.info(f"Paid {paid_now} on purchase {purchase.id} (vendor {vendor_id})")

        if changes.get("payment_method") is not None:
            purchase.payment_method = _value(changes["payment_method"])

        if "notes" in changes:
            purchase.notes = changes["notes"]

    db.refresh(purchase)
    return purchase


# =========================================================
# DELETE
# =========================================================
def delete_purchase(db: Session, vendor_id: int, purchase_id: int) -> Vendor:
    with atomic(db):
        purchase = _lock_purchase(db, vendor_id, purchase_id)
        vendor = lock_vendor(db, vendor_id)

        stocked = [item for item in purchase.items if item.product_id is not None]
        for item in sorted(stocked, key=lambda item: item.product_id):
            product = lock_product(db, item.product_id)
            if product.stock < item.quantity:
                # Part of this delivery has been sold already
                raise InsufficientStock(product.name, product.stock, item.quantity)
            product.stock -= item.quantity

        _apply_vendor_delta(vendor, -1, -to_money(purchase.total), -_outstanding(purchase))

        db.delete(purchase)

    db.refresh(vendor)

    logger.warning(f"Purchase {purchase_id} deleted; vendor {vendor_id} totals reversed")

    return vendor


# =========================================================
# READS
# =========================================================
def get_purchase(db: Session, vendor_id: int, purchase_id: int) -> Purchase:
    purchase = (
        db.query(Purchase)
        .options(selectinload(Purchase.items))
        .filter(Purchase.id == purchase_id, Purchase.vendor_id == vendor_id)
        .first()
    )

    if not purchase:
        raise NotFound("Purchase", purchase_id)

    return purchase


def list_vendor_purchases(db: Session, vendor_id: int) -> list[Purchase]:
    if not db.query(Vendor.id).filter(Vendor.id == vendor_id).first():
        raise NotFound("Vendor", vendor_id)

    return (
        db.query(Purchase)
        .options(selectinload(Purchase.items))
        .filter(Purchase.vendor_id == vendor_id)
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .all()
    )


# =========================================================
# RECONCILIATION
# =========================================================
def aggregates_from_purchases(db: Session, vendor_id: int) -> VendorAggregates:
    count, total_amount, balance = (
        db.query(
            func.count(Purchase.id),
            func.coalesce(func.sum(Purchase.total), 0),
            func.coalesce(func.sum(Purchase.amount_due - Purchase.amount_paid), 0),
        )
        .filter(Purchase.vendor_id == vendor_id)
        .one()
    )

    return VendorAggregates(int(count), to_money(total_amount), to_money(balance))


def reconcile_vendor(db: Session, vendor_id: int) -> Reconciliation:
    """Recompute a vendor's running totals from its purchases and fix drift."""
    with atomic(db):
        vendor = lock_vendor(db, vendor_id)

        previous = VendorAggregates(
            int(vendor.total_purchases or 0),
            to_money(vendor.total_amount or 0),
            to_money(vendor.balance or 0),
        )
        actual = aggregates_from_purchases(db, vendor_id)

        corrected = actual != previous
        if corrected:
            logger.warning(
                f"Vendor {vendor_id} aggregates drifted: stored={previous} actual={actual}"
            )
            vendor.total_purchases = actual.total_purchases
            vendor.total_amount = actual.total_amount
            vendor.balance = actual.balance

    db.refresh(vendor)

    return Reconciliation(vendor=vendor, corrected=corrected, previous=previous)
