# pickbook/utils/phone.py
"""
GCash (Philippine mobile) numbers.

The form works with the 10 local digits ("9171234567"); the API and the profile
document store them with the country prefix ("+639171234567").
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

COUNTRY_PREFIX = "+63"

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_gcash(raw: str) -> Optional[str]:
    """
    "+63 917 123 4567" / "09171234567" / "9171234567" → "9171234567".

    Returns None when the input is not a 10-digit mobile number.
    """
    if not raw:
        return None
    digits = _SEPARATORS.sub("", raw.strip())
    if digits.startswith("+"):
        digits = digits[1:]
    if digits.startswith("63") and len(digits) == 12:
        digits = digits[2:]
    elif digits.startswith("0") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10 or not digits.isdigit():
        return None
    return digits


def with_prefix(local: str) -> str:
    """"9171234567" → "+639171234567"."""
    return f"{COUNTRY_PREFIX}{local}" if local else ""


def strip_prefix(stored: Optional[str]) -> str:
    """"+639171234567" → "9171234567"; anything else is returned unchanged."""
    if not stored:
        return ""
    if stored.startswith(COUNTRY_PREFIX):
        return stored[len(COUNTRY_PREFIX):]
    return stored


def validate_contact(contact, tg_id: int) -> Optional[str]:
    """
    Shared Telegram contact → local GCash digits.

    Only the sender's own contact is accepted.
    """
    if contact.user_id != tg_id:
        logger.warning(f"[PHONE] Contact user_id mismatch: {contact.user_id} != {tg_id}")
        return None

    digits = normalize_gcash(contact.phone_number or "")
    if digits is None:
        logger.info(f"[PHONE] Contact number is not a PH mobile: tg_id={tg_id}")
    return digits
