"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles Hungarian and English notation:
    - "1234.5"
    - "1234,5" (decimal comma)
    - "1 234,50" and "1.234,50" (grouped, decimal comma)
    - "1,234.50" (grouped, decimal point)
    - "12 000 Ft", "12000 HUF" (currency suffix)

    When both separators occur, the one further right is the decimal separator.

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    # Remove currency markers and every kind of space used for grouping
    cleaned = re.sub(r"(?i)\s*(ft|huf|eur|usd|[€$])\s*", "", amount_str.strip())
    cleaned = re.sub(r"[\s\u00a0\u202f]", "", cleaned)

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".")

    try:
        return Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e
