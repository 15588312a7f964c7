from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from casri.core.constants import PaymentMethod
from casri.core.errors import (
    AlreadySettled,
    InsufficientStock,
    InvalidAmounts,
    NotFound,
    OverpaymentError,
    TransactionFailure,
    ValidationError,
)
from casri.core.payment_state import PaymentStatus
from casri.models.payment_history import PaymentHistory
from casri.models.products import Product
from casri.models.sale_items import SaleItem
from casri.models.sales import Sale
from casri.schemas.sale import SaleCreate, SaleItemCreate, SaleUpdate
from casri.services import sales as sales_service


def _sale(lines, amount_due, amount_paid="0", **extra) -> SaleCreate:
    return SaleCreate(
        products=[
            SaleItemCreate(product_id=product.id, quantity=qty, selling_price=Decimal(price))
            for product, qty, price in lines
        ],
        amount_due=Decimal(amount_due),
        amount_paid=Decimal(amount_paid),
        **extra,
    )


def _stock(db, product_id) -> int:
    db.expire_all()
    return db.get(Product, product_id).stock


# ============== Creation ==============

def test_partial_sale_then_overpayment_then_exact_payment(db, employee_user, make_product):
    product = make_product(stock=10)

    sale = sales_service.create_sale(db, _sale([(product, 3, "100")], "300", "100"), employee_user)

    assert sale.status == PaymentStatus.PARTIALLY_PAID.value
    assert sale.remaining_balance == Decimal("200.00")
    assert _stock(db, product.id) == 7

    with pytest.raises(OverpaymentError):
        sales_service.collect_payment(db, sale.id, Decimal("250"), employee_user)

    unchanged = sales_service.get_sale(db, sale.id)
    assert unchanged.amount_paid == Decimal("100.00")
    assert unchanged.remaining_balance == Decimal("200.00")
    assert unchanged.status == PaymentStatus.PARTIALLY_PAID.value
    assert len(unchanged.payments) == 1

    paid = sales_service.collect_payment(db, sale.id, Decimal("200"), employee_user)

    assert paid.status == PaymentStatus.COMPLETED.value
    assert paid.remaining_balance == Decimal("0.00")
    assert _stock(db, product.id) == 7
    assert [p.amount for p in paid.payments] == [Decimal("100.00"), Decimal("200.00")]


def test_create_then_delete_restores_stock(db, admin_user, make_product):
    product = make_product(stock=10)
    baseline = product.stock

    sale = sales_service.create_sale(db, _sale([(product, 2, "25")], "50", "50"), admin_user)
    assert sale.status == PaymentStatus.COMPLETED.value
    assert _stock(db, product.id) == baseline - 2

    sales_service.delete_sale(db, sale.id)

    assert _stock(db, product.id) == baseline
    assert db.query(Sale).count() == 0
    assert db.query(SaleItem).count() == 0
    assert db.query(PaymentHistory).count() == 0


def test_insufficient_stock_aborts_the_whole_sale(db, employee_user, make_product):
    plenty = make_product(name="Rice 5kg", stock=10)
    scarce = make_product(name="Cooking Oil", stock=1)

    with pytest.raises(InsufficientStock) as exc_info:
        sales_service.create_sale(
            db,
            _sale([(plenty, 4, "10"), (scarce, 2, "10")], "60"),
            employee_user,
        )

    assert "Cooking Oil" in exc_info.value.message
    assert _stock(db, plenty.id) == 10
    assert _stock(db, scarce.id) == 1
    assert db.query(Sale).count() == 0


def test_repeated_lines_are_checked_against_cumulative_stock(db, employee_user, make_product):
    product = make_product(stock=5)

    with pytest.raises(InsufficientStock):
        sales_service.create_sale(db, _sale([(product, 3, "10"), (product, 3, "10")], "60"), employee_user)

    assert _stock(db, product.id) == 5


def test_missing_product_is_not_found(db, employee_user, make_product):
    product = make_product(stock=10)
    payload = SaleCreate(
        products=[
            SaleItemCreate(product_id=product.id, quantity=1, selling_price=Decimal("10")),
            SaleItemCreate(product_id=999, quantity=1, selling_price=Decimal("10")),
        ],
        amount_due=Decimal("20"),
    )

    with pytest.raises(NotFound):
        sales_service.create_sale(db, payload, employee_user)

    assert _stock(db, product.id) == 10


def test_amount_paid_above_due_is_rejected(db, employee_user, make_product):
    product = make_product(stock=10)

    with pytest.raises(InvalidAmounts):
        sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "15"), employee_user)

    assert _stock(db, product.id) == 10


def test_unpaid_sale_records_a_zero_opening_payment(db, employee_user, make_product):
    product = make_product(stock=10)

    sale = sales_service.create_sale(db, _sale([(product, 1, "80")], "80"), employee_user)

    assert sale.status == PaymentStatus.PENDING.value
    assert len(sale.payments) == 1
    assert sale.payments[0].amount == Decimal("0.00")
    assert sale.payments[0].notes == "Sale opened unpaid"


def test_tendered_cash_makes_change(db, employee_user, make_product):
    product = make_product(stock=10)

    sale = sales_service.create_sale(
        db,
        _sale([(product, 1, "80")], "80", amount_tendered=Decimal("100")),
        employee_user,
    )

    assert sale.amount_paid == Decimal("80.00")
    assert sale.change_amount == Decimal("20.00")
    assert sale.status == PaymentStatus.COMPLETED.value


def test_request_id_makes_creation_idempotent(db, employee_user, make_product):
    product = make_product(stock=10)
    payload = _sale([(product, 2, "10")], "20", "20", request_id="till-1-0001")

    first = sales_service.create_sale(db, payload, employee_user)
    second = sales_service.create_sale(db, payload, employee_user)

    assert first.id == second.id
    assert _stock(db, product.id) == 8


def test_line_and_sale_discounts(db, employee_user, make_product):
    product = make_product(stock=10)

    sale = sales_service.create_sale(
        db,
        SaleCreate(
            products=[SaleItemCreate(product_id=product.id, quantity=2, selling_price=Decimal("50"), discount=Decimal("10"))],
            amount_due=Decimal("90"),
            discount_percentage=Decimal("10"),
        ),
        employee_user,
    )

    item = sale.items[0]
    assert item.item_total == Decimal("100.00")
    assert item.item_discount == Decimal("10.00")
    assert item.item_net == Decimal("90.00")
    assert sale.subtotal == Decimal("100.00")
    assert sale.discount_amount == Decimal("10.00")
    assert sale.grand_total == Decimal("90.00")


def test_flat_discount_wins_and_cannot_exceed_subtotal():
    totals = sales_service.calculate_totals([Decimal("100")], discount_percentage=50, discount_amount=Decimal("5"))
    assert totals.discount_total == Decimal("5.00")
    assert totals.grand_total == Decimal("95.00")

    with pytest.raises(ValidationError):
        sales_service.calculate_totals([Decimal("100")], discount_amount=Decimal("100.01"))


def test_sale_date_may_be_backdated_but_not_in_the_future(db, employee_user, make_product):
    product = make_product(stock=10)
    today = datetime.now(timezone.utc).date()

    backdated = sales_service.create_sale(
        db, _sale([(product, 1, "10")], "10", "10", sale_date=today - timedelta(days=3)), employee_user
    )
    assert backdated.created_at.date() == today - timedelta(days=3)

    with pytest.raises(ValidationError):
        sales_service.create_sale(
            db, _sale([(product, 1, "10")], "10", "10", sale_date=today + timedelta(days=1)), employee_user
        )


# ============== Payments ==============

def test_collect_payment_records_history_and_method(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "100")], "100"), employee_user)

    updated = sales_service.collect_payment(
        db, sale.id, Decimal("40"), employee_user, payment_method=PaymentMethod.ZAAD
    )

    assert updated.status == PaymentStatus.PARTIALLY_PAID.value
    assert updated.payments[-1].amount == Decimal("40.00")
    assert updated.payments[-1].payment_method == "ZAAD"
    assert updated.payments[-1].collected_by_id == employee_user.id


def test_collect_on_completed_sale_is_already_settled(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10"), employee_user)

    with pytest.raises(AlreadySettled):
        sales_service.collect_payment(db, sale.id, Decimal("1"), employee_user)


def test_collect_on_missing_sale_is_not_found(db, employee_user):
    with pytest.raises(NotFound):
        sales_service.collect_payment(db, 12345, Decimal("1"), employee_user)


# ============== Edits / refund / cancel ==============

def test_cancelled_sale_rejects_payments_and_edits(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "10")], "10"), employee_user)

    cancelled = sales_service.update_sale(db, sale.id, SaleUpdate(status=PaymentStatus.CANCELLED))
    assert cancelled.status == PaymentStatus.CANCELLED.value

    with pytest.raises(AlreadySettled):
        sales_service.collect_payment(db, sale.id, Decimal("5"), employee_user)

    with pytest.raises(AlreadySettled):
        sales_service.update_sale(db, sale.id, SaleUpdate(notes="late note"))


def test_only_cancelled_can_be_set_by_hand(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "10")], "10"), employee_user)

    with pytest.raises(ValidationError):
        sales_service.update_sale(db, sale.id, SaleUpdate(status=PaymentStatus.COMPLETED))


def test_moving_due_date_into_the_past_marks_overdue(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "10")], "10"), employee_user)

    updated = sales_service.update_sale(
        db, sale.id, SaleUpdate(due_date=date.today() - timedelta(days=2), customer_name="Amina")
    )

    assert updated.status == PaymentStatus.OVERDUE.value
    assert updated.customer_name == "Amina"


def test_refund_keeps_stock_and_is_terminal(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 2, "10")], "20", "20"), employee_user)

    refunded = sales_service.refund_sale(db, sale.id, notes="Damaged packaging")

    assert refunded.status == PaymentStatus.REFUNDED.value
    assert "Damaged packaging" in refunded.notes
    assert _stock(db, product.id) == 8

    with pytest.raises(AlreadySettled):
        sales_service.refund_sale(db, sale.id)


def test_refund_needs_money_paid(db, employee_user, make_product):
    product = make_product(stock=10)
    sale = sales_service.create_sale(db, _sale([(product, 1, "10")], "10"), employee_user)

    with pytest.raises(ValidationError):
        sales_service.refund_sale(db, sale.id)


# ============== Overdue sweep / listing ==============

def test_mark_overdue_sales_only_touches_unpaid_past_due(db, employee_user, make_product):
    product = make_product(stock=10)
    future = date.today() + timedelta(days=5)

    unpaid = sales_service.create_sale(db, _sale([(product, 1, "10")], "10", due_date=future), employee_user)
    partial = sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "5", due_date=future), employee_user)

    later = datetime.now(timezone.utc) + timedelta(days=10)
    changed = sales_service.mark_overdue_sales(db, now=later)

    assert changed == 1
    assert sales_service.get_sale(db, unpaid.id).status == PaymentStatus.OVERDUE.value
    assert sales_service.get_sale(db, partial.id).status == PaymentStatus.PARTIALLY_PAID.value


def test_non_admin_only_lists_own_sales(db, admin_user, employee_user, make_user, make_product):
    product = make_product(stock=20)
    other = make_user()

    sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10"), employee_user)
    sales_service.create_sale(db, _sale([(product, 1, "10")], "10"), other)

    own = sales_service.list_sales(db, employee_user)
    everything = sales_service.list_sales(db, admin_user)

    assert own["total"] == 1
    assert everything["total"] == 2
    assert everything["totals"]["total_amount_due"] == Decimal("20.00")
    assert everything["totals"]["total_remaining_balance"] == Decimal("10.00")


def test_daily_summary_groups_by_method_and_status(db, employee_user, make_product):
    product = make_product(stock=20)

    sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10"), employee_user)
    sales_service.create_sale(
        db, _sale([(product, 2, "10")], "20", "5", payment_method=PaymentMethod.EDAHAB), employee_user
    )

    summary = sales_service.daily_summary(db, employee_user)

    assert summary["total_sales"] == 2
    assert summary["total_items"] == 3
    assert summary["total_amount_paid"] == Decimal("15.00")
    assert summary["sales_by_payment_method"]["edahab"]["count"] == 1
    assert summary["sales_by_status"]["completed"]["count"] == 1
    assert summary["sales_by_status"]["partially_paid"]["remaining_balance"] == Decimal("15.00")


def test_list_sales_applies_one_sided_date_bounds(db, employee_user, make_product):
    product = make_product(stock=20)
    for day in (date(2025, 1, 5), date(2025, 2, 5), date(2025, 3, 5)):
        sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10", sale_date=day), employee_user)

    since_february = sales_service.list_sales(db, employee_user, start_date=date(2025, 2, 1))
    until_february = sales_service.list_sales(db, employee_user, end_date=date(2025, 2, 5))

    assert since_february["total"] == 2
    assert until_february["total"] == 2
    assert until_february["totals"]["total_amount_due"] == Decimal("20.00")


# ============== Transactions & Locking ==============

def test_storage_failure_rolls_back_and_raises_transaction_failure(db, employee_user, make_product, monkeypatch):
    product = make_product(stock=10)
    existing = sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10"), employee_user)

    # A clashing sale number makes the insert fail after stock was already decremented
    monkeypatch.setattr(sales_service, "generate_sale_number", lambda: existing.sale_number)

    with pytest.raises(TransactionFailure):
        sales_service.create_sale(db, _sale([(product, 4, "10")], "40", "40"), employee_user)

    assert _stock(db, product.id) == 9
    assert db.query(Sale).count() == 1
    assert db.query(PaymentHistory).count() == 1


def test_storage_failure_surfaces_as_generic_500(db, employee_client, employee_user, make_product, monkeypatch):
    product = make_product(stock=10)
    existing = sales_service.create_sale(db, _sale([(product, 1, "10")], "10", "10"), employee_user)
    monkeypatch.setattr(sales_service, "generate_sale_number", lambda: existing.sale_number)

    response = employee_client.post(
        "/sales",
        json={
            "products": [{"productId": product.id, "quantity": 2, "sellingPrice": "10"}],
            "amountDue": "20",
            "amountPaid": "20",
        },
    )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Unable to complete the operation, please retry"}
    assert _stock(db, product.id) == 9


def test_products_are_locked_in_id_order(db, employee_user, make_product, monkeypatch):
    first = make_product(stock=5)
    second = make_product(stock=5)

    locked = []
    real_lock = sales_service.lock_product

    def _recording_lock(session, product_id):
        locked.append(product_id)
        return real_lock(session, product_id)

    monkeypatch.setattr(sales_service, "lock_product", _recording_lock)

    sale = sales_service.create_sale(
        db, _sale([(second, 1, "10"), (first, 2, "10"), (second, 1, "10")], "40", "40"), employee_user
    )

    assert locked == [first.id, second.id]
    assert [item.product_id for item in sale.items] == [second.id, first.id, second.id]
    assert _stock(db, second.id) == 3

    locked.clear()
    sales_service.delete_sale(db, sale.id)

    assert locked == sorted(locked)
    assert _stock(db, first.id) == 5
    assert _stock(db, second.id) == 5


# ============== Payment method breakdown ==============

def test_payment_method_stats_split_by_window(db, employee_user, admin_user, make_product):
    product = make_product(stock=20)
    now = datetime(2026, 3, 18, 10, 0, tzinfo=timezone.utc)

    sales_service.create_sale(db, _sale([(product, 1, "100")], "100", "100"), employee_user, now=now)
    sales_service.create_sale(
        db,
        _sale([(product, 1, "100")], "100", "40", payment_method=PaymentMethod.ZAAD, sale_date=date(2026, 3, 14)),
        employee_user,
        now=now,
    )
    sales_service.create_sale(
        db,
        _sale([(product, 1, "100")], "100", "100", payment_method=PaymentMethod.EDAHAB, sale_date=date(2026, 3, 2)),
        employee_user,
        now=now,
    )
    # Outside every window, and someone else's sale
    sales_service.create_sale(db, _sale([(product, 1, "100")], "100", "100", sale_date=date(2026, 2, 20)), employee_user, now=now)
    sales_service.create_sale(db, _sale([(product, 1, "100")], "100", "100"), admin_user, now=now)

    stats = sales_service.payment_method_stats(db, employee_user, now=now)

    assert stats["all_payment_methods"] == ["cash", "zaad", "edahab", "credit"]
    assert set(stats["today"]) == {"cash", "zaad", "edahab", "credit"}
    assert stats["today"]["cash"]["count"] == 1
    assert stats["today"]["zaad"]["count"] == 0
    assert stats["week"]["zaad"]["total_remaining_balance"] == Decimal("60.00")
    assert stats["week"]["edahab"]["count"] == 0
    assert stats["month"]["edahab"]["total_sales"] == Decimal("100.00")
    assert stats["month"]["credit"]["count"] == 0
    assert stats["summary"] == {
        "today_total": Decimal("100.00"),
        "weekly_total": Decimal("140.00"),
        "monthly_total": Decimal("240.00"),
    }

    zaad_week = sales_service.payment_method_transactions(db, employee_user, "zaad", "week", now=now)
    assert zaad_week["count"] == 1
    assert zaad_week["payment_method"] == "zaad"
    assert zaad_week["total_amount_paid"] == Decimal("40.00")

    cash_month = sales_service.payment_method_transactions(db, employee_user, PaymentMethod.CASH, "month", now=now)
    assert cash_month["count"] == 1
