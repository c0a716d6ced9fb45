"""Phone number normalization for restaurant listings."""

import re
from typing import Any, Optional

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone_strict(value: Any) -> Optional[str]:
    """Return an 11-digit national number starting with `0`, or None.

    Accepted inputs: `0XXXXXXXXXX`, `+90XXXXXXXXXX`, `90XXXXXXXXXX`,
    `0090XXXXXXXXXX` and a bare 10-digit subscriber number, with any
    punctuation or spacing.
    """
    if not isinstance(value, str):
        return None
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None
    if digits.startswith("0090"):
        digits = digits[4:]
    if digits.startswith("90") and len(digits) == 12:
        digits = "0" + digits[2:]
    if len(digits) == 10:
        digits = "0" + digits
    if digits.startswith("0") and len(digits) == 11:
        return digits
    return None


def last10(value: Optional[str]) -> Optional[str]:
    """Return the last ten digits of `value` for duplicate detection."""
    if not isinstance(value, str):
        return None
    digits = _NON_DIGITS.sub("", value)
    return digits[-10:] if digits else None
