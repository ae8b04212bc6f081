"""
Numeric type utilities for fixed-point conversion.

Exchange requests carry prices and sizes as decimal strings; permits carry
integers scaled by a per-market number of decimals. Conversion truncates
toward zero and never rounds up.
"""

from typing import Any, Optional
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_DOWN, localcontext
import logging

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

# Enough digits for any u128 value plus 38 fractional digits
_FIXED_POINT_PRECISION = 80


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Safely convert any value to Decimal.

    Args:
        value: Value to convert (str, int, float, Decimal, None)
        default: Default value if conversion fails (default: None)

    Returns:
        Decimal or default if conversion fails

    Examples:
        >>> to_decimal("0.65")
        Decimal('0.65')
        >>> to_decimal(100.50)
        Decimal('100.5')
        >>> to_decimal(None, Decimal("0"))
        Decimal('0')
    """
    if value is None:
        return default

    try:
        if isinstance(value, Decimal):
            return value
        elif isinstance(value, bool):
            logger.warning(f"Refusing to convert bool {value} to Decimal")
            return default
        elif isinstance(value, str):
            return Decimal(value.strip())
        elif isinstance(value, (int, float)):
            # Convert via string to avoid float precision loss
            return Decimal(str(value))
        else:
            logger.warning(f"Cannot convert {type(value)} to Decimal: {value}")
            return default
    except (ValueError, InvalidOperation) as e:
        logger.warning(f"Failed to convert {value} to Decimal: {e}")
        return default


def decimal_to_fixed(value: Any, decimals: int) -> int:
    """
    Convert a decimal amount to a fixed-point integer, truncating.

    Digits beyond `decimals` fractional places are dropped (toward zero);
    the sign is preserved.

    Args:
        value: Decimal string (or int/float/Decimal)
        decimals: Fractional digits of the fixed-point representation

    Returns:
        Scaled integer

    Raises:
        ValidationError: If value is not a finite number, is too large to
            scale, or decimals is negative

    Examples:
        >>> decimal_to_fixed("131425", 6)
        131425000000
        >>> decimal_to_fixed("0.00021", 8)
        21000
        >>> decimal_to_fixed("-1.5", 2)
        -150
        >>> decimal_to_fixed("1.999", 2)
        199
    """
    if decimals < 0:
        raise ValidationError(f"decimals must be >= 0, got {decimals}")

    dec = to_decimal(value)
    if dec is None or not dec.is_finite():
        raise ValidationError(f"Invalid decimal amount: {value!r}")

    # Far wider than any u128 field once scaled
    if dec.adjusted() + decimals > _FIXED_POINT_PRECISION:
        raise ValidationError(f"Decimal amount out of range: {value!r}")

    try:
        with localcontext() as ctx:
            ctx.prec = _FIXED_POINT_PRECISION + decimals
            ctx.rounding = ROUND_DOWN
            scaled = dec.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN)
    except DecimalException as e:
        raise ValidationError(f"Cannot scale decimal amount {value!r}: {e!r}") from e
    return int(scaled)


def fixed_to_decimal(value: int, decimals: int) -> Decimal:
    """
    Convert a fixed-point integer back to Decimal.

    Examples:
        >>> fixed_to_decimal(21000, 8)
        Decimal('0.00021000')
    """
    with localcontext() as ctx:
        ctx.prec = _FIXED_POINT_PRECISION + decimals
        return Decimal(value).scaleb(-decimals)


def parse_integer_literal(text: str) -> Optional[int]:
    """
    Parse an integer literal the way exchange client ids are written.

    Accepts surrounding whitespace, decimal with an optional sign, and
    unsigned 0x/0o/0b prefixed forms. An empty string is 0.

    Returns:
        The integer, or None if text is not an integer literal
    """
    stripped = text.strip()
    if stripped == "":
        return 0

    lowered = stripped.lower()
    for prefix, base in (("0x", 16), ("0o", 8), ("0b", 2)):
        if lowered.startswith(prefix):
            digits = stripped[2:]
            if not digits or "_" in digits:
                return None
            try:
                return int(digits, base)
            except ValueError:
                return None

    sign = 1
    digits = stripped
    if digits[0] in "+-":
        sign = -1 if digits[0] == "-" else 1
        digits = digits[1:]
    if not digits or not digits.isascii() or not digits.isdigit():
        return None
    return sign * int(digits)
