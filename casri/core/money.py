"""
Fixed-point money helpers.

Every due/paid/balance amount in the system is a ``Decimal`` quantized to
cents. Floats are accepted at the edges only and go through ``str`` first so
that ``0.1`` becomes ``Decimal("0.10")`` and not its binary approximation.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Convert ``value`` to a cent-quantized Decimal."""
    if value is None:
        raise ValueError("Money value is required")

    if isinstance(value, bool):
        raise TypeError("Booleans are not money")

    if isinstance(value, float):
        value = str(value)

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid money value: {value!r}") from exc

    if not amount.is_finite():
        raise ValueError(f"Invalid money value: {value!r}")

    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def percent_of(percent, amount) -> Decimal:
    """``percent`` % of ``amount``, rounded to cents."""
    return to_money(Decimal(str(percent)) / HUNDRED * to_money(amount))


def money_sum(values) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total
