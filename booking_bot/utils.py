"""Shared utilities used across the booking bot."""

import re
import unicodedata


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("+7 (912) 345-67-89")
        '+79123456789'
        >>> normalize_phone("8 912 345 67 89")
        '89123456789'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def has_control_chars(value: str) -> bool:
    """True if the string contains any Unicode control character (category Cc)."""
    return any(unicodedata.category(ch) == "Cc" for ch in value)
