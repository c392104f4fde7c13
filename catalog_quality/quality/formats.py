"""
Named format validators used by FORMAT rules.

The registry is fixed at import time with the built-in formats and can be
extended with register_format().
"""
import re
import uuid
from typing import Callable, Dict, List
from urllib.parse import urlparse

FormatValidator = Callable[[str], bool]

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s().-]{7,20}$")
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
DIGITS_PATTERN = re.compile(r"^\d+$")


def is_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def is_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_phone(value: str) -> bool:
    return bool(PHONE_PATTERN.match(value)) and sum(ch.isdigit() for ch in value) >= 7


def is_ean(value: str) -> bool:
    """Loose EAN check: 8 to 14 digits, no checksum"""
    return bool(DIGITS_PATTERN.match(value)) and 8 <= len(value) <= 14


def gtin_checksum_ok(digits: str) -> bool:
    """
    Validate the GS1 mod-10 check digit.

    Weights alternate 3, 1 starting from the digit next to the check digit.
    """
    body, check = digits[:-1], int(digits[-1])
    total = 0
    for index, char in enumerate(reversed(body)):
        weight = 3 if index % 2 == 0 else 1
        total += int(char) * weight
    return (10 - total % 10) % 10 == check


def is_gtin(value: str) -> bool:
    """GTIN-8, GTIN-12 (UPC), GTIN-13 (EAN) or GTIN-14 with valid check digit"""
    return bool(DIGITS_PATTERN.match(value)) and len(value) in (8, 12, 13, 14) and gtin_checksum_ok(value)


def is_gtin13(value: str) -> bool:
    return bool(DIGITS_PATTERN.match(value)) and len(value) == 13 and gtin_checksum_ok(value)


def is_isbn13(value: str) -> bool:
    digits = value.replace("-", "")
    return is_gtin13(digits) and digits[:3] in ("978", "979")


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def is_slug(value: str) -> bool:
    return bool(SLUG_PATTERN.match(value))


_FORMAT_REGISTRY: Dict[str, FormatValidator] = {
    "email": is_email,
    "url": is_url,
    "phone": is_phone,
    "ean": is_ean,
    "gtin": is_gtin,
    "gtin13": is_gtin13,
    "gtin-13": is_gtin13,
    "isbn13": is_isbn13,
    "uuid": is_uuid,
    "slug": is_slug,
}


def register_format(name: str, validator: FormatValidator) -> None:
    """Add or replace a named format validator"""
    _FORMAT_REGISTRY[name.strip().lower()] = validator


def get_format_validator(name: str) -> FormatValidator:
    """
    Look up a format validator by name (case-insensitive).

    Raises:
        KeyError: if no validator is registered under that name
    """
    return _FORMAT_REGISTRY[name.strip().lower()]


def available_formats() -> List[str]:
    return sorted(_FORMAT_REGISTRY)
