from datetime import date, timedelta
from decimal import Decimal

import pytest

from casri.core.constants import ExpenseType
from casri.core.errors import AlreadySettled, InvalidAmounts, NotFound, OverpaymentError
from casri.core.payment_state import PaymentStatus
from casri.schemas.expense import ExpenseCreate, ExpenseUpdate
from casri.services import expenses as expenses_service


def _expense(amount_due, amount_paid="0", **extra) -> ExpenseCreate:
    return ExpenseCreate(
        expense_type=extra.pop("expense_type", ExpenseType.RENT),
        amount_due=Decimal(amount_due),
        amount_paid=Decimal(amount_paid),
        **extra,
    )


# ============== Service ==============

def test_expense_is_paid_down_to_completion(db, employee_user):
    expense = expenses_service.create_expense(db, _expense("500", "200", client_name="Landlord"), employee_user)

    assert expense.balance == Decimal("300.00")
    assert expense.status == PaymentStatus.PARTIALLY_PAID.value

    with pytest.raises(OverpaymentError):
        expenses_service.pay_expense(db, expense.id, Decimal("300.01"))

    paid = expenses_service.pay_expense(db, expense.id, Decimal("300"))
    assert paid.balance == Decimal("0.00")
    assert paid.status == PaymentStatus.COMPLETED.value

    with pytest.raises(AlreadySettled):
        expenses_service.update_expense(db, expense.id, ExpenseUpdate(description="too late"))


def test_expense_paid_above_due_is_rejected(db, employee_user):
    with pytest.raises(InvalidAmounts):
        expenses_service.create_expense(db, _expense("50", "60"), employee_user)


def test_moving_due_date_flags_overdue(db, employee_user):
    expense = expenses_service.create_expense(
        db, _expense("40", expense_type=ExpenseType.INTERNET, due_date=date.today() + timedelta(days=3)), employee_user
    )
    assert expense.status == PaymentStatus.PENDING.value

    updated = expenses_service.update_expense(
        db, expense.id, ExpenseUpdate(due_date=date.today() - timedelta(days=3))
    )
    assert updated.status == PaymentStatus.OVERDUE.value


def test_list_expenses_with_filters_and_summary(db, employee_user):
    expenses_service.create_expense(db, _expense("100", "100"), employee_user)
    expenses_service.create_expense(db, _expense("40", "10", expense_type=ExpenseType.WATER), employee_user)

    everything = expenses_service.list_expenses(db)
    water = expenses_service.list_expenses(db, expense_type=ExpenseType.WATER)

    assert everything["total"] == 2
    assert everything["summary"]["total_amount_due"] == Decimal("140.00")
    assert everything["summary"]["total_balance"] == Decimal("30.00")
    assert water["total"] == 1
    assert water["data"][0].expense_type == "WATER"


def test_delete_expense(db, employee_user):
    expense = expenses_service.create_expense(db, _expense("10"), employee_user)

    expenses_service.delete_expense(db, expense.id)

    with pytest.raises(NotFound):
        expenses_service.get_expense(db, expense.id)


# ============== API ==============

def test_expense_endpoints(employee_client, admin_client):
    response = employee_client.post(
        "/expenses",
        json={"expenseType": "ELECTRICITY", "amountDue": "75.50", "amountPaid": "20", "clientName": "SomEnergy"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PARTIALLY_PAID"
    assert Decimal(body["balance"]) == Decimal("55.50")

    response = employee_client.post(f"/expenses/{body['id']}/pay", json={"amount": "55.50"})
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"

    listing = employee_client.get("/expenses", params={"expenseType": "ELECTRICITY"}).json()
    assert listing["total"] == 1
    assert Decimal(listing["summary"]["totalAmountPaid"]) == Decimal("75.50")

    assert employee_client.delete(f"/expenses/{body['id']}").status_code == 403
    assert admin_client.delete(f"/expenses/{body['id']}").status_code == 200
    assert admin_client.get(f"/expenses/{body['id']}").status_code == 404


def test_expense_type_is_validated(employee_client):
    response = employee_client.post("/expenses", json={"expenseType": "LUNCH", "amountDue": "5"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_null_for_required_expense_fields_keeps_them(employee_client):
    created = employee_client.post(
        "/expenses", json={"expenseType": "WATER", "paymentMethod": "edahab", "amountDue": "12"}
    ).json()
    assert created["paymentMethod"] == "EDAHAB"

    response = employee_client.put(
        f"/expenses/{created['id']}",
        json={"expenseType": None, "paymentMethod": None, "description": "Monthly bill"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["expenseType"] == "WATER"
    assert body["paymentMethod"] == "EDAHAB"
    assert body["description"] == "Monthly bill"
