"""
Payment-state reconciliation shared by every ledger entity.

Sales, vendor purchases and expenses all carry an amount due and a running
amount paid. The functions below derive the remaining balance, the change
owed and the status from those two numbers. They are pure: nothing here
touches the database, and a rejected call never returns a partial result.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from casri.core.errors import AlreadySettled, InvalidAmounts, OverpaymentError, ValidationError
from casri.core.money import ZERO, to_money


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    OVERDUE = "OVERDUE"


# Set only by an explicit administrative action, never derived
MANUAL_STATUSES = frozenset({PaymentStatus.CANCELLED, PaymentStatus.REFUNDED})

SETTLED_STATUSES = frozenset({PaymentStatus.COMPLETED}) | MANUAL_STATUSES

OPEN_STATUSES = frozenset({
    PaymentStatus.PENDING,
    PaymentStatus.PARTIALLY_PAID,
    PaymentStatus.OVERDUE,
})


@dataclass(frozen=True)
class LedgerState:
    amount_due: Decimal
    amount_paid: Decimal
    status: Optional[PaymentStatus] = None
    due_date: Optional[Union[date, datetime]] = None


@dataclass(frozen=True)
class PaymentOutcome:
    amount_paid: Decimal
    remaining_balance: Decimal
    change_amount: Decimal
    status: PaymentStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_past_due(due_date, now: datetime) -> bool:
    if due_date is None:
        return False

    if isinstance(due_date, datetime):
        if due_date.tzinfo is None and now.tzinfo is not None:
            due_date = due_date.replace(tzinfo=timezone.utc)
        elif due_date.tzinfo is not None and now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now > due_date

    return now.date() > due_date


def _coerce_status(status) -> Optional[PaymentStatus]:
    if status is None or isinstance(status, PaymentStatus):
        return status
    return PaymentStatus(status)


def remaining_balance(amount_due, amount_paid) -> Decimal:
    return max(ZERO, to_money(amount_due) - to_money(amount_paid))


def change_amount(amount_due, amount_paid) -> Decimal:
    return max(ZERO, to_money(amount_paid) - to_money(amount_due))


def derive_status(
    amount_due,
    amount_paid,
    due_date=None,
    now: Optional[datetime] = None,
    current=None,
) -> PaymentStatus:
    """
    Status implied by the amounts.

    CANCELLED and REFUNDED are sticky: when ``current`` is one of them it is
    returned unchanged.
    """
    current = _coerce_status(current)
    if current in MANUAL_STATUSES:
        return current

    amount_due = to_money(amount_due)
    amount_paid = to_money(amount_paid)

    if amount_paid >= amount_due:
        return PaymentStatus.COMPLETED

    if amount_paid > ZERO:
        return PaymentStatus.PARTIALLY_PAID

    if _is_past_due(due_date, now or _utcnow()):
        return PaymentStatus.OVERDUE

    return PaymentStatus.PENDING


def initial_state(amount_due, amount_paid, due_date=None, now: Optional[datetime] = None) -> PaymentOutcome:
    """State of a ledger entry at creation time."""
    amount_due = to_money(amount_due)
    amount_paid = to_money(amount_paid)

    if amount_due <= ZERO:
        raise InvalidAmounts("Amount due is required and must be greater than 0")

    if amount_paid < ZERO:
        raise InvalidAmounts("Amount paid cannot be negative")

    if amount_paid > amount_due:
        raise InvalidAmounts("Amount paid cannot exceed amount due")

    return PaymentOutcome(
        amount_paid=amount_paid,
        remaining_balance=amount_due - amount_paid,
        change_amount=ZERO,
        status=derive_status(amount_due, amount_paid, due_date, now),
    )


def tender(amount_due, amount_tendered) -> tuple[Decimal, Decimal]:
    """
    Cash-register change making, legal at sale creation only.

    Returns ``(amount_paid, change_amount)``: the customer pays at most what
    is due and gets the rest back.
    """
    amount_due = to_money(amount_due)
    amount_tendered = to_money(amount_tendered)

    if amount_tendered < ZERO:
        raise InvalidAmounts("Amount tendered cannot be negative")

    amount_paid = min(amount_tendered, amount_due)
    return amount_paid, change_amount(amount_due, amount_tendered)


def apply_payment(state: LedgerState, increment, now: Optional[datetime] = None) -> PaymentOutcome:
    """Apply an incremental payment, rejecting anything but an exact fit."""
    try:
        increment = to_money(increment)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Valid payment amount is required") from exc

    if increment <= ZERO:
        raise ValidationError("Valid payment amount is required")

    amount_due = to_money(state.amount_due)
    amount_paid = to_money(state.amount_paid)
    status = _coerce_status(state.status)

    if status in SETTLED_STATUSES or amount_paid >= amount_due:
        if status in MANUAL_STATUSES:
            raise AlreadySettled(f"Cannot collect payment on a {status.value.lower()} entry")
        raise AlreadySettled("Already paid in full")

    remaining = amount_due - amount_paid
    if increment > remaining:
        raise OverpaymentError(increment, remaining)

    new_paid = amount_paid + increment

    return PaymentOutcome(
        amount_paid=new_paid,
        remaining_balance=amount_due - new_paid,
        change_amount=ZERO,
        status=derive_status(amount_due, new_paid, state.due_date, now),
    )


def refresh_status(state: LedgerState, now: Optional[datetime] = None) -> PaymentStatus:
    """Re-derive the status of a stored entry, e.g. to flag it OVERDUE."""
    return derive_status(
        state.amount_due,
        state.amount_paid,
        state.due_date,
        now,
        current=state.status,
    )
