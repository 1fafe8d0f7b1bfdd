"""Identifier generation for customers, cards and transactions."""

from __future__ import annotations

import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_unique_id(prefix: str = "") -> str:
    """Return ``prefix`` + base36 milliseconds + 5 random base36 chars, upper-cased.

    The random suffix keeps two ids generated within the same millisecond apart.
    """
    millis = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(5))
    return f"{prefix}{_base36(millis)}{suffix}".upper()
