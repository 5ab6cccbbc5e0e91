"""
Decimal precision utilities for the Ledger.

Provides functions to work with database numeric precision and monetary amounts.
All monetary columns in the database use NUMERIC(precision, scale) type.

Usage:
    from ledger.app.utils.decimal_utils import get_model_column_precision, to_money

    precision, scale = get_model_column_precision(Account, "balance")
    # Returns: (12, 2)

    to_money("100.5")
    # Returns: Decimal("100.50")
"""
from decimal import Decimal, InvalidOperation
from typing import Type, Tuple, Union

from sqlalchemy import Numeric
from sqlmodel import SQLModel

from ledger.app.db.models import Account

AmountLike = Union[Decimal, int, float, str]


def get_model_column_precision(model: Type[SQLModel], column_name: str) -> Tuple[int, int]:
    """
    Get (precision, scale) for a numeric column from SQLModel.

    Reads the column type definition from the model to get the actual
    precision and scale values, avoiding hardcoded constants.

    Args:
        model: SQLModel class (e.g., Account)
        column_name: Column name (e.g., "balance")

    Returns:
        Tuple of (precision, scale)

    Raises:
        ValueError: If column not found or not a Numeric type

    Example:
        >>> get_model_column_precision(Account, "balance")
        (12, 2)
    """
    if not hasattr(model, '__table__'):
        raise ValueError(f"Model {model.__name__} has no __table__ attribute")

    table = model.__table__

    if column_name not in table.columns:
        raise ValueError(f"Column '{column_name}' not found in {model.__name__}")

    column_type = table.columns[column_name].type

    if not isinstance(column_type, Numeric):
        raise ValueError(
            f"Column '{column_name}' in {model.__name__} is not Numeric type "
            f"(found: {type(column_type).__name__})"
            )

    precision = column_type.precision
    scale = column_type.scale

    if precision is None or scale is None:
        raise ValueError(f"Column '{column_name}' in {model.__name__} has undefined precision/scale")

    return precision, scale


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert an amount to Decimal.

    Floats go through their shortest str() form so 0.1 becomes Decimal("0.1"),
    not the binary expansion.

    Raises:
        ValueError: If the value is not a finite number
        TypeError: If the value type is not supported
    """
    if isinstance(value, bool):
        raise TypeError("Amount must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise ValueError(f"Amount '{value}' is not a valid number")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise TypeError(f"Amount must be a Decimal, int, float or str, got {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {result}")
    return result


def decimal_places(value: Decimal) -> int:
    """Number of significant fractional digits (trailing zeros ignored)."""
    exponent = value.normalize().as_tuple().exponent
    return max(0, -exponent)


def to_money(value: AmountLike) -> Decimal:
    """
    Convert an amount to a Decimal that fits accounts.balance.

    Raises:
        ValueError: If the value is not finite, has more fractional digits than
            the column scale, or more integer digits than precision - scale
        TypeError: If the value type is not supported
    """
    amount = to_decimal(value)
    precision, scale = get_model_column_precision(Account, "balance")
    if decimal_places(amount) > scale:
        raise ValueError(f"Amount {amount} has more than {scale} decimal places")
    # adjusted() is the exponent of the most significant digit: 1234.5 -> 3
    if amount and amount.adjusted() >= precision - scale:
        raise ValueError(f"Amount {amount} exceeds {precision - scale} integer digits")
    try:
        return amount.quantize(Decimal(10) ** -scale)
    except InvalidOperation:
        raise ValueError(f"Amount {amount} cannot be represented with {scale} decimal places")
