from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")


def only_digits(value: str | None) -> str:
    """Strip every non-digit character. ``None`` becomes an empty string."""
    if not value:
        return ""
    return re.sub(r"\D", "", str(value))


def extract_code(labeled: str | None) -> str:
    """Return the code part of a ``"<code> - <label>"`` selection."""
    if not labeled:
        return ""
    code, _, _ = str(labeled).partition(" - ")
    return code.strip()


def parse_currency(raw: str | float | Decimal | None) -> Decimal:
    """Parse a Brazilian currency string (``"R$ 1.234,56"``) into a Decimal.

    Never raises: empty or unparseable input yields zero, callers validate
    positivity downstream.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    # YAML forms may carry plain numbers, which use a decimal point
    if isinstance(raw, (int, float, Decimal)):
        value = Decimal(str(raw))
        return value if value.is_finite() else ZERO
    cleaned = (
        re.sub(r"\s+", "", str(raw).replace("R$", ""))
        .replace(".", "")
        .replace(",", ".")
    )
    if not cleaned:
        return ZERO
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return ZERO
    if not value.is_finite():
        return ZERO
    return value
