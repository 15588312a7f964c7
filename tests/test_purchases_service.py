from decimal import Decimal

import pytest

from casri.core.errors import AlreadySettled, InsufficientStock, NotFound, OverpaymentError
from casri.core.payment_state import PaymentStatus
from casri.models.products import Product
from casri.models.vendors import Vendor
from casri.schemas.sale import SaleCreate, SaleItemCreate
from casri.schemas.vendor import PurchaseCreate, PurchaseItemCreate, PurchaseUpdate
from casri.services import purchases as purchases_service
from casri.services import sales as sales_service


def _purchase(lines, amount_paid="0", amount_due=None) -> PurchaseCreate:
    return PurchaseCreate(
        products=[
            PurchaseItemCreate(quantity=qty, unit_price=Decimal(price), **ref)
            for ref, qty, price in lines
        ],
        amount_paid=Decimal(amount_paid),
        amount_due=Decimal(amount_due) if amount_due is not None else None,
    )


def _vendor(db, vendor_id) -> Vendor:
    db.expire_all()
    return db.get(Vendor, vendor_id)


def _stock(db, product_id) -> int:
    db.expire_all()
    return db.get(Product, product_id).stock


def test_create_purchase_moves_stock_and_vendor_aggregates(db, employee_user, make_product, make_vendor):
    product = make_product(stock=4)
    vendor = make_vendor()

    purchase = purchases_service.create_purchase(
        db,
        vendor.id,
        _purchase([({"product_id": product.id}, 10, "6.50")], amount_paid="15"),
        employee_user,
    )

    assert purchase.total == Decimal("65.00")
    assert purchase.amount_due == Decimal("65.00")
    assert purchase.remaining_balance == Decimal("50.00")
    assert purchase.status == PaymentStatus.PARTIALLY_PAID.value
    assert purchase.items[0].product_name == product.name
    assert _stock(db, product.id) == 14

    vendor = _vendor(db, vendor.id)
    assert vendor.total_purchases == 1
    assert vendor.total_amount == Decimal("65.00")
    assert vendor.balance == Decimal("50.00")


def test_free_text_line_matches_catalog_by_name(db, employee_user, make_product, make_vendor):
    sugar = make_product(name="Sugar 1kg", stock=0)
    vendor = make_vendor()

    purchase = purchases_service.create_purchase(
        db,
        vendor.id,
        _purchase([
            ({"product_name": "Sugar 1kg"}, 5, "1.20"),
            ({"product_name": "Delivery crates"}, 2, "3.00"),
        ]),
        employee_user,
    )

    matched, unmatched = purchase.items
    assert matched.product_id == sugar.id
    assert unmatched.product_id is None
    assert _stock(db, sugar.id) == 5


def test_create_then_delete_restores_vendor_and_stock(db, employee_user, make_product, make_vendor):
    product = make_product(stock=3)
    vendor = make_vendor()

    purchases_service.create_purchase(
        db, vendor.id, _purchase([({"product_id": product.id}, 2, "10")], amount_paid="20"), employee_user
    )
    before = _vendor(db, vendor.id)
    baseline = (before.total_purchases, before.total_amount, before.balance)

    purchase = purchases_service.create_purchase(
        db, vendor.id, _purchase([({"product_id": product.id}, 5, "9.99")], amount_paid="10"), employee_user
    )
    purchases_service.update_purchase(db, vendor.id, purchase.id, PurchaseUpdate(amount=Decimal("5")))

    purchases_service.delete_purchase(db, vendor.id, purchase.id)

    after = _vendor(db, vendor.id)
    assert (after.total_purchases, after.total_amount, after.balance) == baseline
    assert _stock(db, product.id) == 5


def test_payment_reduces_vendor_balance(db, employee_user, make_product, make_vendor):
    product = make_product()
    vendor = make_vendor()
    purchase = purchases_service.create_purchase(
        db, vendor.id, _purchase([({"product_id": product.id}, 4, "25")]), employee_user
    )

    updated = purchases_service.update_purchase(
        db, vendor.id, purchase.id, PurchaseUpdate(amount=Decimal("30"), notes="First instalment")
    )

    assert updated.amount_paid == Decimal("30.00")
    assert updated.status == PaymentStatus.PARTIALLY_PAID.value
    assert updated.notes == "First instalment"
    assert _vendor(db, vendor.id).balance == Decimal("70.00")

    with pytest.raises(OverpaymentError):
        purchases_service.update_purchase(db, vendor.id, purchase.id, PurchaseUpdate(amount=Decimal("70.01")))

    assert _vendor(db, vendor.id).balance == Decimal("70.00")

    settled = purchases_service.update_purchase(db, vendor.id, purchase.id, PurchaseUpdate(amount=Decimal("70")))
    assert settled.status == PaymentStatus.COMPLETED.value
    assert _vendor(db, vendor.id).balance == Decimal("0.00")

    with pytest.raises(AlreadySettled):
        purchases_service.update_purchase(db, vendor.id, purchase.id, PurchaseUpdate(amount=Decimal("1")))


def test_purchase_must_belong_to_vendor(db, employee_user, make_product, make_vendor):
    product = make_product()
    owner = make_vendor(name="Owner")
    stranger = make_vendor(name="Stranger")
    purchase = purchases_service.create_purchase(
        db, owner.id, _purchase([({"product_id": product.id}, 1, "5")]), employee_user
    )

    with pytest.raises(NotFound):
        purchases_service.delete_purchase(db, stranger.id, purchase.id)

    with pytest.raises(NotFound):
        purchases_service.create_purchase(
            db, 999, _purchase([({"product_id": product.id}, 1, "5")]), employee_user
        )


def test_delete_is_refused_once_the_stock_was_sold(db, employee_user, make_product, make_vendor):
    product = make_product(stock=0)
    vendor = make_vendor()
    purchase = purchases_service.create_purchase(
        db, vendor.id, _purchase([({"product_id": product.id}, 3, "10")]), employee_user
    )
    sales_service.create_sale(
        db,
        SaleCreate(
            products=[SaleItemCreate(product_id=product.id, quantity=2, selling_price=Decimal("15"))],
            amount_due=Decimal("30"),
            amount_paid=Decimal("30"),
        ),
        employee_user,
    )

    with pytest.raises(InsufficientStock):
        purchases_service.delete_purchase(db, vendor.id, purchase.id)

    vendor = _vendor(db, vendor.id)
    assert vendor.total_purchases == 1
    assert vendor.balance == Decimal("30.00")
    assert _stock(db, product.id) == 1


def test_vendor_balance_matches_its_purchases_after_any_sequence(db, employee_user, make_product, make_vendor):
    product = make_product(stock=50)
    vendor = make_vendor()

    created = [
        purchases_service.create_purchase(
            db, vendor.id, _purchase([({"product_id": product.id}, qty, price)], amount_paid=paid), employee_user
        )
        for qty, price, paid in [(2, "10.10", "0"), (3, "7.25", "5"), (1, "99.99", "99.99"), (4, "0.50", "1")]
    ]

    purchases_service.update_purchase(db, vendor.id, created[0].id, PurchaseUpdate(amount=Decimal("12.34")))
    purchases_service.delete_purchase(db, vendor.id, created[1].id)
    purchases_service.update_purchase(db, vendor.id, created[3].id, PurchaseUpdate(amount=Decimal("0.50")))

    stored = _vendor(db, vendor.id)
    actual = purchases_service.aggregates_from_purchases(db, vendor.id)

    assert stored.balance == actual.balance
    assert stored.total_amount == actual.total_amount
    assert stored.total_purchases == actual.total_purchases == 3

    result = purchases_service.reconcile_vendor(db, vendor.id)
    assert result.corrected is False


def test_reconcile_corrects_drift(db, employee_user, make_product, make_vendor):
    product = make_product()
    vendor = make_vendor()
    purchases_service.create_purchase(
        db, vendor.id, _purchase([({"product_id": product.id}, 2, "40")], amount_paid="30"), employee_user
    )

    drifted = _vendor(db, vendor.id)
    drifted.balance = Decimal("999.00")
    drifted.total_purchases = 7
    db.commit()

    result = purchases_service.reconcile_vendor(db, vendor.id)

    assert result.corrected is True
    assert result.previous.balance == Decimal("999.00")
    assert result.previous.total_purchases == 7
    assert result.vendor.balance == Decimal("50.00")
    assert result.vendor.total_purchases == 1
    assert result.vendor.total_amount == Decimal("80.00")


def test_purchase_locks_products_in_id_order(db, employee_user, make_product, make_vendor, monkeypatch):
    first = make_product(stock=0)
    second = make_product(stock=0)
    vendor = make_vendor()

    locked = []
    real_lock = purchases_service.lock_product

    def _recording_lock(session, product_id):
        locked.append(product_id)
        return real_lock(session, product_id)

    monkeypatch.setattr(purchases_service, "lock_product", _recording_lock)

    purchase = purchases_service.create_purchase(
        db,
        vendor.id,
        _purchase([
            ({"product_id": second.id}, 3, "1.00"),
            ({"product_id": first.id}, 2, "1.00"),
            ({"product_id": second.id}, 1, "1.00"),
        ]),
        employee_user,
    )

    assert locked == [first.id, second.id]
    assert _stock(db, second.id) == 4

    locked.clear()
    purchases_service.delete_purchase(db, vendor.id, purchase.id)

    assert locked == [first.id, second.id, second.id]
    assert _stock(db, first.id) == 0
    assert _stock(db, second.id) == 0
