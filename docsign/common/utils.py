"""
Utility functions for DocSign.
"""

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

MS_PER_DAY = 24 * 60 * 60 * 1000


def now_utc() -> datetime:
    """
    Get the current time as a timezone-aware UTC datetime.

    Returns:
        Current UTC datetime
    """
    return datetime.now(timezone.utc)


def digest_hex_upper(data: bytes, algorithm: str) -> str:
    """
    Hash data with a hashlib algorithm and return uppercase hex.

    Args:
        data: Data to hash
        algorithm: hashlib algorithm name (e.g. "sha1", "sha256")

    Returns:
        Uppercase hex digest
    """
    return hashlib.new(algorithm, data).hexdigest().upper()


def b64encode(data: bytes) -> str:
    """
    Base64 encode bytes to string.

    Args:
        data: Bytes to encode

    Returns:
        Base64-encoded string
    """
    return base64.b64encode(data).decode('ascii')


def b64decode(data: str) -> bytes:
    """
    Base64 decode string to bytes, ignoring embedded whitespace.

    Args:
        data: Base64-encoded string

    Returns:
        Decoded bytes

    Raises:
        binascii.Error: If the input is not valid base64
    """
    return base64.b64decode("".join(data.split()), validate=True)


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Constant-time comparison to prevent timing attacks.

    Args:
        a: First bytes object
        b: Second bytes object

    Returns:
        True if equal, False otherwise
    """
    if len(a) != len(b):
        return False

    result = 0
    for x, y in zip(a, b):
        result |= x ^ y

    return result == 0


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, floored (negative when end is earlier)."""
    delta_ms = (end - start) // timedelta(milliseconds=1)
    return delta_ms // MS_PER_DAY


def days_until(date: datetime, now: Optional[datetime] = None) -> int:
    return days_between(now or now_utc(), date)


def is_expired(date: datetime, now: Optional[datetime] = None) -> bool:
    return (now or now_utc()) > date


def format_date(date: datetime) -> str:
    """Render a datetime like "January 5, 2026 at 09:30 UTC"."""
    return f"{date.strftime('%B')} {date.day}, {date.year} at {date.strftime('%H:%M %Z')}".strip()


def format_duration(days: int) -> str:
    """
    Describe a remaining validity period in words.

    Args:
        days: Days until expiration (negative when already expired)

    Returns:
        Human-readable description
    """
    if days < 0:
        return "Expired"
    if days == 0:
        return "Expires today"
    if days == 1:
        return "Expires tomorrow"
    if days < 30:
        return f"Expires in {days} days"
    if days < 365:
        return f"Expires in {days // 30} months"
    return f"Expires in {days // 365} years"
