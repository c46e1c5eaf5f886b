"""Amount parsing utilities."""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "Rs 123.45", "$123.45"
    - "-123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed or is not finite
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Currency symbols and codes
    amount_str = re.sub(r"(?i)rs\.?|pkr|[$€£¥₨]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")

    if not amount.is_finite():
        raise ValueError(f"Amount '{amount_str}' is not a finite number")

    return -amount if is_negative else amount


def coerce_amount(value: Any, context: str = "") -> Decimal:
    """Turn a stored amount into a Decimal, treating malformed input as zero.

    Snapshots exported by the host application sometimes hold amounts as
    strings, and occasionally as values that do not parse at all. Those
    count as zero so that they never reach an accumulated total.

    Args:
        value: Decimal, int, float, str or None
        context: Optional label for the warning log (e.g. a transaction id)

    Returns:
        Finite Decimal amount
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        logger.warning("Ignoring boolean amount %r %s", value, context)
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = parse_amount(value)
        except ValueError:
            logger.warning("Treating unparseable amount %r as zero %s", value, context)
            return ZERO
    else:
        logger.warning("Treating amount of type %s as zero %s", type(value).__name__, context)
        return ZERO

    if not amount.is_finite():
        logger.warning("Treating non-finite amount %r as zero %s", value, context)
        return ZERO
    return amount
