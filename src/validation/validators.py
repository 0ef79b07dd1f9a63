"""Pure input validators for checkout forms (Brazilian formats)."""

from __future__ import annotations

import hashlib
import re

_DANGEROUS_CHARS = re.compile(r"[<>\"'&]")
_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_NON_DIGITS = re.compile(r"\D")

MAX_SANITIZED_LENGTH = 1000
MAX_EMAIL_LENGTH = 254


def _digits(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def _all_same(digits: str) -> bool:
    return len(set(digits)) == 1


def sanitize_string(value: str) -> str:
    """Trim, drop HTML-significant characters and cap the length."""
    return _DANGEROUS_CHARS.sub("", value.strip())[:MAX_SANITIZED_LENGTH]


def validate_email(email: str) -> bool:
    return bool(_EMAIL.fullmatch(email)) and len(email) <= MAX_EMAIL_LENGTH


def validate_cpf(cpf: str) -> bool:
    """Check an individual taxpayer number (CPF): 9 digits + 2 check digits."""
    digits = _digits(cpf)
    if len(digits) != 11 or _all_same(digits):
        return False

    for size in (9, 10):
        total = sum(int(d) * (size + 1 - i) for i, d in enumerate(digits[:size]))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(digits[size]):
            return False
    return True


def _cnpj_check_digit(base: str) -> int:
    total = 0
    weight = len(base) - 7
    for d in base:
        total += int(d) * weight
        weight -= 1
        if weight < 2:
            weight = 9
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cnpj(cnpj: str) -> bool:
    """Check a company registration number (CNPJ): 12 digits + 2 check digits."""
    digits = _digits(cnpj)
    if len(digits) != 14 or _all_same(digits):
        return False
    if _cnpj_check_digit(digits[:12]) != int(digits[12]):
        return False
    return _cnpj_check_digit(digits[:13]) == int(digits[13])


def validate_brazilian_phone(phone: str) -> bool:
    """10 or 11 digits including a two-digit area code between 11 and 99."""
    digits = _digits(phone)
    if not 10 <= len(digits) <= 11:
        return False
    return 11 <= int(digits[:2]) <= 99


def validate_cep(cep: str) -> bool:
    return len(_digits(cep)) == 8


def validate_origin(origin: str | None, allowed_origins: list[str]) -> bool:
    if not origin:
        return False
    return origin in allowed_origins


def generate_secure_hash(data: str) -> str:
    return hashlib.sha256(data.encode()).hexdigest()
