"""Fixed-point helpers shared by every calculation in the engine."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Union

from ..exceptions import InvalidInput

Number = Union[Decimal, int, float, str]

# Working precision for iterative solvers (Newton, tick walking).
HIGH_PRECISION = 50

# Reported values are rounded to 8 decimal places.
DEFAULT_PLACES = 8

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_decimal(value: Number, name: str = "value") -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1").

    Raises:
        InvalidInput: if the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidInput(f"{name} must be numeric, got bool")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            raise InvalidInput(f"{name} is not a number: {value!r}") from e

    if not result.is_finite():
        raise InvalidInput(f"{name} must be finite, got {value!r}")
    return result


def quantize(value: Decimal, places: int = DEFAULT_PLACES) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    exponent = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = HIGH_PRECISION
        return value.quantize(exponent, rounding=ROUND_HALF_UP)


def clamp(value, low, high):
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    """Divide, returning ``default`` when the denominator is zero."""
    if denominator == 0:
        return default
    return numerator / denominator


def require_positive(value: Number, name: str, stage: str = None) -> Decimal:
    """Convert to Decimal and require a strictly positive value."""
    result = to_decimal(value, name)
    if result <= 0:
        raise InvalidInput(f"{name} must be positive, got {result}", stage=stage)
    return result


def require_non_negative(value: Number, name: str, stage: str = None) -> Decimal:
    """Convert to Decimal and require a value >= 0."""
    result = to_decimal(value, name)
    if result < 0:
        raise InvalidInput(f"{name} must not be negative, got {result}", stage=stage)
    return result
