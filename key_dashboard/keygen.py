"""Display prefix generation for key records.

The prefix is a short label shown next to a masked key in the dashboard.
It is not derived from any secret and carries no uniqueness guarantee.
Format:  6 characters from 0-9A-Z
"""

from __future__ import annotations

import secrets
import string

BASE36 = string.digits + string.ascii_uppercase
PREFIX_LENGTH = 6


def generate_key_prefix(length: int = PREFIX_LENGTH) -> str:
    """Return ``length`` random base-36 characters, uppercased."""
    return "".join(secrets.choice(BASE36) for _ in range(length))
