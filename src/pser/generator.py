"""Random password generator.

Characters are drawn with ``secrets`` from the selected sets only.
"""

import secrets
import string
from typing import List

UPPER = string.ascii_uppercase
LOWER = string.ascii_lowercase
DIGITS = string.digits
PUNCTUATION = ")(*&^%$#@!~"


def generate_password(
    upper: bool = True,
    lower: bool = True,
    digits: bool = True,
    punctuation: bool = False,
    length: int = 16,
) -> str:
    """Return a random password, or "" when length is 0 or no set is chosen."""
    if length < 0:
        raise ValueError("length must not be negative")

    alphabet = "".join(
        chars
        for chars, enabled in (
            (UPPER, upper),
            (LOWER, lower),
            (DIGITS, digits),
            (PUNCTUATION, punctuation),
        )
        if enabled
    )
    if not alphabet or length == 0:
        return ""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_passwords(
    count: int,
    upper: bool = True,
    lower: bool = True,
    digits: bool = True,
    punctuation: bool = False,
    length: int = 16,
) -> List[str]:
    """Generate `count` candidates, dropping empty ones."""
    candidates = (
        generate_password(upper, lower, digits, punctuation, length)
        for _ in range(count)
    )
    return [password for password in candidates if password]
