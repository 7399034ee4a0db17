"""
API key generation.
"""

from __future__ import annotations

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits


def generate_api_key(length: int = 32) -> str:
    """Return a random alphanumeric key of ``length`` characters."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))
