"""
Validators — Rule-based checks for payment submission fields.
"""
import math
import re
import time

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REFERENCE_PREFIX = "IMF"


def validate_email(email: str | None) -> bool:
    """Basic email shape: something@something.tld, no whitespace."""
    if not email:
        return False
    return bool(EMAIL_RE.match(email))


def parse_amount(raw: str | float | int | None) -> float | None:
    """Parse a positive, finite amount. Returns None when unusable."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        amount = float(str(raw).strip())
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def generate_reference() -> str:
    """Server-side payment reference: IMF-<epoch millis>."""
    return f"{REFERENCE_PREFIX}-{int(time.time() * 1000)}"


def clean_text(value: str | None) -> str:
    """Strip surrounding whitespace; None becomes empty."""
    return (value or "").strip()


# Column widths of the payments table, keyed by submission field
MAX_LENGTHS = {
    "name": 128,
    "email": 254,
    "serviceType": 128,
    "reference": 64,
}
MAX_FILENAME_LENGTH = 255


def check_lengths(fields: dict[str, str]) -> str | None:
    """First field longer than its column allows, as an error message; None when all fit."""
    for field, limit in MAX_LENGTHS.items():
        if len(fields.get(field) or "") > limit:
            return f"{field} must be at most {limit} characters"
    return None
