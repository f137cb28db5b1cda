"""Canonical forms for contact values so lookups compare like with like.

Phones are reduced to digits. A US number written with its country code
("+1 612 555 0100", 11 digits starting with 1) is stored as the 10-digit
national number; any other 10 to 15 digit sequence is kept as-is.
"""

import re

from backend.app.models.contact_point import EMAIL, PHONE_TYPES

_NON_DIGITS = re.compile(r"\D+")

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def normalize_email(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if not value or "@" not in value:
        return None
    return value


def normalize_phone(raw: str | None) -> str | None:
    if raw is None:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) < MIN_PHONE_DIGITS or len(digits) > MAX_PHONE_DIGITS:
        return None
    return digits


def normalize_contact(raw: str | None, contact_type: str) -> str | None:
    if contact_type == EMAIL:
        return normalize_email(raw)
    if contact_type in PHONE_TYPES:
        return normalize_phone(raw)
    if raw is None:
        return None
    return raw.strip() or None
