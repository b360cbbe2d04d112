"""
Monetary Arithmetic Module

Decimal parsing and rounding for ledger amounts and percentage rates.
NEVER uses float for monetary values: floats are converted through their
string form before any arithmetic happens.
"""

from contextlib import contextmanager
from decimal import (
    Decimal, DecimalException, Inexact, InvalidOperation, ROUND_HALF_UP,
    getcontext, localcontext
)
from typing import Any, Iterator, Optional

from .errors import ErrorKind, LedgerError

# Set global decimal context for financial precision
getcontext().prec = 28

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def smallest_unit(precision: int) -> Decimal:
    """Smallest representable currency unit, e.g. 0.01 for precision 2"""
    return Decimal('0.1') ** precision


def to_decimal(value: Any, kind: ErrorKind) -> Decimal:
    """
    Convert a caller-supplied number to a finite Decimal

    Raises:
        LedgerError: with the given kind if the value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise LedgerError(kind, f"not a number: {value!r}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise LedgerError(kind, f"not a number: {value!r}")
    if not value.is_finite():
        raise LedgerError(kind, f"not a finite number: {value}")
    return value


def parse_amount(value: Any, precision: int, allow_zero: bool = False) -> Decimal:
    """
    Validate a monetary amount

    Amounts must be positive (or zero when allowed) and must not carry more
    decimal places than the smallest currency unit.

    Raises:
        LedgerError: INVALID_AMOUNT
    """
    amount = to_decimal(value, ErrorKind.INVALID_AMOUNT)
    if amount < ZERO or (amount == ZERO and not allow_zero):
        raise LedgerError(ErrorKind.INVALID_AMOUNT, f"amount must be positive: {amount}")
    try:
        exact = amount.quantize(smallest_unit(precision)) == amount
    except DecimalException:
        exact = False
    if not exact:
        raise LedgerError(ErrorKind.INVALID_AMOUNT,
                          f"amount is finer than the currency unit: {amount}")
    return amount


def parse_rate(value: Any, maximum: Optional[Decimal] = None) -> Decimal:
    """
    Validate a percentage rate

    Raises:
        LedgerError: INVALID_RATE if negative, malformed or above maximum
    """
    rate = to_decimal(value, ErrorKind.INVALID_RATE)
    if rate < ZERO:
        raise LedgerError(ErrorKind.INVALID_RATE, f"rate must not be negative: {rate}")
    if maximum is not None and rate > maximum:
        raise LedgerError(ErrorKind.INVALID_RATE, f"rate must not exceed {maximum}: {rate}")
    return rate


@contextmanager
def exact_arithmetic() -> Iterator[None]:
    """
    Decimal context in which results must be exact

    Any result that would be rounded to fit the context precision, or that
    overflows it, raises instead of silently changing the amount.

    Raises:
        LedgerError: INVALID_AMOUNT
    """
    with localcontext() as context:
        context.traps[Inexact] = True
        try:
            yield
        except DecimalException as e:
            raise LedgerError(ErrorKind.INVALID_AMOUNT,
                              f"amount out of range: {type(e).__name__}")


def percent_of(amount: Decimal, rate: Decimal, precision: int) -> Decimal:
    """rate percent of amount, rounded half up to the smallest currency unit"""
    with localcontext() as context:
        context.prec *= 2
        share = amount * rate / HUNDRED
        # Rounding to the currency unit is the one intended inexact step
        context.traps[Inexact] = False
        return share.quantize(smallest_unit(precision), rounding=ROUND_HALF_UP)


def format_amount(amount: Optional[Decimal], precision: int) -> Optional[str]:
    """Render an amount with the currency's fixed number of decimals"""
    if amount is None:
        return None
    return f"{amount:.{precision}f}"
