"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re
from typing import Any


def parse_amount(value: Any) -> Decimal:
    """Coerce a collaborator or CLI amount into a Decimal.

    Handles:
    - numbers (int, float, Decimal); floats go through ``str`` to avoid binary noise
    - "123.45", "-123.45", "1,234.56"
    - "₪123.45", "$123.45" (currency symbols are dropped)
    - "(123.45)" (negative in parentheses)

    Args:
        value: Amount as number or string

    Returns:
        Decimal amount

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Could not parse amount {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if value is None or not str(value).strip():
        raise ValueError("Empty amount string")

    amount_str = str(value).strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥₪]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    return -amount if is_negative else amount
