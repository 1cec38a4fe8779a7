"""Data normalization utilities for consistent data quality."""

import re
import unicodedata
from typing import Optional


_NON_DIGIT_RE = re.compile(r"\D")


def clean_phone(phone: object) -> Optional[str]:
    """
    Reduce a raw phone value to digits with an optional leading "+".

    Telephony webhooks send numbers in whatever shape the carrier produced,
    so this deliberately does not validate length or country.

    Examples:
    - "(555) 123-4567" → "5551234567"
    - " +1 555-123-4567" → "+15551234567"

    Returns:
        Cleaned phone or None if no digits remain
    """
    if phone is None or isinstance(phone, bool):
        return None

    raw = str(phone).strip()
    digits = _NON_DIGIT_RE.sub("", raw)
    if not digits:
        return None
    return f"+{digits}" if raw.startswith("+") else digits


def extract_phone_last4(phone: Optional[str]) -> Optional[str]:
    """
    Extract last 4 digits from a phone number (for PII-safe logging).
    """
    if not phone:
        return None
    digits = _NON_DIGIT_RE.sub("", phone)
    if not digits:
        return None
    return digits[-4:] if len(digits) >= 4 else digits


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercase, trimmed email or None if empty
    """
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def normalize_name(*parts: Optional[str]) -> Optional[str]:
    """
    Join name parts with single spaces, collapsing whitespace.

    Applies NFC normalization so names from different sources compare equal.
    """
    joined = " ".join(p.strip() for p in parts if p and p.strip())
    if not joined:
        return None
    joined = unicodedata.normalize("NFC", joined)
    return re.sub(r"\s+", " ", joined)
