"""Medical user identifier (MUID) generation.

Format: ``MI`` + two-digit birth year + four random digits + four digits
taken from the ASCII sum of the lower-cased first name, e.g. ``MI9004217650``.
"""

import secrets
from typing import Any

MUID_PREFIX = "MI"


class InvalidMuidInput(ValueError):
    """Raised when a MUID cannot be generated from the given input."""


def generate_muid(name: str, year_of_birth: Any) -> str:
    """Generate a MUID for a patient.

    Raises:
        InvalidMuidInput: Empty name, or year outside 1900-2100.
    """
    tokens = (name or "").split()
    if not tokens:
        raise InvalidMuidInput("Name is required to generate MUID")
    first_name = tokens[0].lower()

    if isinstance(year_of_birth, bool):
        year = None
    else:
        try:
            year = int(year_of_birth)
        except (TypeError, ValueError):
            year = None
        if isinstance(year_of_birth, float) and not year_of_birth.is_integer():
            year = None
    if year is None or not 1900 <= year <= 2100:
        raise InvalidMuidInput("Invalid yearOfBirth for MUID generation")

    random_four = f"{secrets.randbelow(10000):04d}"
    ascii_sum = sum(ord(char) for char in first_name)
    ascii_component = f"{ascii_sum:04d}"[:4]

    return f"{MUID_PREFIX}{str(year)[-2:]}{random_four}{ascii_component}"
