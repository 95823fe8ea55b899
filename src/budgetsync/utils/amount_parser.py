"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles the formats found in bank exports:
    - "123.45", "-123.45"
    - "-1 234,56" (decimal comma, space or non-breaking space grouping)
    - "1,234.56" (comma grouping with decimal point)
    - "(123.45)" (negative in parentheses)
    - currency symbols or a trailing code ("$12.00", "12,00 CZK")

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥]|Kč|\b[A-Z]{3}\b", "", amount_str)
    amount_str = re.sub(r"[\s ]", "", amount_str)

    if "," in amount_str and "." in amount_str:
        # Whichever separator comes last is the decimal one
        if amount_str.rfind(",") > amount_str.rfind("."):
            amount_str = amount_str.replace(".", "").replace(",", ".")
        else:
            amount_str = amount_str.replace(",", "")
    elif "," in amount_str:
        amount_str = amount_str.replace(",", ".")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e!r}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return -amount if is_negative else amount
