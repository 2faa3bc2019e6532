from __future__ import annotations

import re
from datetime import date


def _digits(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r"\D", "", value)


def _is_repeated(digits: str) -> bool:
    return digits == digits[0] * len(digits)


def _cpf_check_digit(digits: str, weight: int) -> int:
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    result = 11 - (total % 11)
    return 0 if result >= 10 else result


def _cnpj_check_digit(digits: str) -> int:
    total = 0
    pos = len(digits) - 7
    for d in digits:
        total += int(d) * pos
        pos -= 1
        if pos < 2:
            pos = 9
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(value: str) -> bool:
    """Validate a CPF (with or without mask) using the Módulo 11 checksum."""
    digits = _digits(value)
    if len(digits) != 11 or _is_repeated(digits):
        return False
    if _cpf_check_digit(digits[:9], 10) != int(digits[9]):
        return False
    return _cpf_check_digit(digits[:10], 11) == int(digits[10])


def validate_cnpj(value: str) -> bool:
    """Validate a CNPJ (with or without mask) using the Módulo 11 checksum."""
    digits = _digits(value)
    if len(digits) != 14 or _is_repeated(digits):
        return False
    if _cnpj_check_digit(digits[:12]) != int(digits[12]):
        return False
    return _cnpj_check_digit(digits[:13]) == int(digits[13])


def validate_document(value: str) -> bool:
    """Validate a CPF or CNPJ, dispatching on the digit count (11 or 14)."""
    digits = _digits(value)
    if len(digits) == 11:
        return validate_cpf(digits)
    if len(digits) == 14:
        return validate_cnpj(digits)
    return False


def validate_date(value: str) -> str:
    """Validate an ISO date string (YYYY-MM-DD).

    Returns the value unchanged if valid.
    Raises ValueError for invalid dates.
    """
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Data invalida: '{value}'. Use AAAA-MM-DD.") from None
    return value
