"""Console password generation."""
from __future__ import annotations

import secrets
import string

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*"
ALPHABET = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS
MIN_LENGTH = 12

_random = secrets.SystemRandom()


def generate_password(length: int = MIN_LENGTH) -> str:
    """Return a random password with at least one character of every class."""
    if length < MIN_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_LENGTH}")
    chars = [secrets.choice(charset) for charset in (UPPERCASE, LOWERCASE, DIGITS, SYMBOLS)]
    chars.extend(secrets.choice(ALPHABET) for _ in range(length - len(chars)))
    _random.shuffle(chars)
    return "".join(chars)
