"""Invite code generation.

Codes are uppercase base-36 strings (0-9, A-Z), six characters by default.
"""
import random
import secrets
import string
from typing import Optional

ALPHABET = string.digits + string.ascii_uppercase
DEFAULT_CODE_LENGTH = 6


def generate_invite_code(length: int = DEFAULT_CODE_LENGTH, rng: Optional[random.Random] = None) -> str:
    """Mint a random invite code.

    Args:
        length: Number of characters.
        rng: Optional seeded generator (tests); defaults to :mod:`secrets`.
    """
    if rng is None:
        return "".join(secrets.choice(ALPHABET) for _ in range(length))
    return "".join(rng.choice(ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    """Codes are matched case-insensitively; surrounding spaces are ignored."""
    return (code or "").strip().upper()
