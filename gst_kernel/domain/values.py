"""
Values -- decimal arithmetic for tax amounts and rates.

Responsibility:
    Single home for the rounding policy: every monetary step rounds to two
    decimal places (paisa) with ROUND_HALF_UP.  Rates are percentages
    (18 means 18%), never fractions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary values are ``Decimal``; floats are rejected at the boundary.
    - ``round_money`` is applied at each computation step, not only at the end.

Failure modes:
    - TypeError from ``to_decimal`` when given a float or a non-numeric value.
    - decimal.InvalidOperation from ``to_decimal`` on a malformed string.
"""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONEY_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")


def to_decimal(value: Decimal | int | str | None) -> Decimal | None:
    """Convert int/str/Decimal to Decimal; None passes through.

    Floats are refused: ``Decimal(0.1)`` is not 0.1.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric amount")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal exactly: {value!r}")


def round_money(amount: Decimal) -> Decimal:
    """Round to paisa, half-up."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(rate: Decimal) -> Decimal:
    """Round a derived percentage to four places, half-up."""
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def percent_of(base: Decimal, rate: Decimal) -> Decimal:
    """``round_money(base * rate / 100)``."""
    return round_money(base * rate / HUNDRED)


def is_positive(value: Decimal | None) -> bool:
    return value is not None and value > ZERO


def display_decimal(value: Decimal) -> str:
    """Plain string without trailing zeros: 9.000000000 -> '9', 0.125 -> '0.125'."""
    return f"{value.normalize():f}"
