"""
Monetary Amount Handling

Parses and rounds monetary values with Decimal precision.
NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Any, Union

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

PRECISION = 2
QUANTUM = Decimal('0.1') ** PRECISION
ZERO = Decimal('0').quantize(QUANTUM)

AmountLike = Union[Decimal, int, float, str]

# Largest magnitude that still fits the context at 2 places
MAX_AMOUNT = Decimal(10) ** (getcontext().prec - PRECISION) - QUANTUM


def quantize(value: Decimal) -> Decimal:
    """
    Round to ledger precision (2 places, half up)

    Raises:
        InvalidAmount: if the rounded value has more digits than the context holds
    """
    try:
        return value.quantize(QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(value, "Amount exceeds ledger precision")


def to_decimal(value: Any) -> Decimal:
    """
    Convert user input to a finite, rounded Decimal.

    Raises:
        InvalidAmount: for booleans, non-numeric strings, NaN, infinities
            or values above MAX_AMOUNT
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(value)

    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() first so floats keep their printed value, not binary noise
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(value)

    if not result.is_finite():
        raise InvalidAmount(value)
    if abs(result) > MAX_AMOUNT:
        raise InvalidAmount(value, "Amount exceeds ledger limit")

    return quantize(result)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a transaction amount, which must be strictly positive
    after rounding.
    """
    amount = to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmount(value)
    return amount


def parse_balance(value: Any) -> Decimal:
    """Parse a balance, which may be zero but never negative"""
    balance = to_decimal(value)
    if balance < ZERO:
        raise InvalidAmount(value, "Balance cannot be negative")
    return balance
