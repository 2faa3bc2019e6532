from __future__ import annotations

import re

from faturador.services.exceptions import InvalidServiceCode
from faturador.utils.parsers import extract_code, only_digits

_LC116_FULL = re.compile(r"\d{2}\.\d{2}\.\d{2}")
_LC116_SHORT = re.compile(r"\d{2}\.\d{2}")


def normalize_lc116(raw: str | None) -> str:
    """Normalize an LC116 service code to the canonical ``00.00.00`` form.

    Accepted shapes: ``01.02.03``, ``01.02``, ``0102`` and ``010203``; any
    surrounding text besides digits and dots is discarded first.
    Raises InvalidServiceCode for anything else.
    """
    cleaned = re.sub(r"[^\d.]", "", (raw or "").strip())

    if _LC116_FULL.fullmatch(cleaned):
        return cleaned
    if _LC116_SHORT.fullmatch(cleaned):
        return f"{cleaned}.00"

    digits = only_digits(cleaned)
    if len(digits) == 4:
        return f"{digits[:2]}.{digits[2:4]}.00"
    if len(digits) == 6:
        return f"{digits[:2]}.{digits[2:4]}.{digits[4:6]}"

    raise InvalidServiceCode("Código de serviço (LC116) inválido. Use o formato 00.00.00.")


def normalize_nbs(raw: str | None) -> str:
    """Digits of an NBS selection (``"1.2101 - Label"`` -> ``"12101"``), may be empty."""
    return only_digits(extract_code(raw))
