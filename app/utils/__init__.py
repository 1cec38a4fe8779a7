"""Utility modules."""

from app.utils.normalization import (
    clean_phone,
    extract_phone_last4,
    normalize_email,
    normalize_name,
)

__all__ = [
    "clean_phone",
    "extract_phone_last4",
    "normalize_email",
    "normalize_name",
]
