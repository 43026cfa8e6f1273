"""Date-of-birth parsing for registration input."""

from datetime import date
from typing import Any, NamedTuple


class InvalidDateOfBirth(ValueError):
    """Raised when a date of birth cannot be normalized."""


class DateOfBirth(NamedTuple):
    iso: str
    year: int


def _to_int(part: str) -> int | None:
    part = part.strip()
    return int(part) if part.isdigit() else None


def normalize_date_of_birth(value: Any) -> DateOfBirth:
    """Parse a ``MM/DD/YYYY`` date of birth.

    Args:
        value: Raw input from a registration form.

    Returns:
        DateOfBirth with the ISO ``YYYY-MM-DD`` string and the year.

    Raises:
        InvalidDateOfBirth: Missing, malformed, out of range, or not a real
            calendar date.
    """
    if not value or not isinstance(value, str):
        raise InvalidDateOfBirth("Date of birth is required")

    parts = value.strip().split("/")
    if len(parts) != 3:
        raise InvalidDateOfBirth("Date of birth must be in MM/DD/YYYY format")

    month, day, year = (_to_int(part) for part in parts)

    if month is None or not 1 <= month <= 12:
        raise InvalidDateOfBirth("Invalid month in date of birth")
    if day is None or not 1 <= day <= 31:
        raise InvalidDateOfBirth("Invalid day in date of birth")
    if year is None or not 1900 <= year <= 2100:
        raise InvalidDateOfBirth("Invalid year in date of birth")

    try:
        parsed = date(year, month, day)
    except ValueError as e:
        raise InvalidDateOfBirth("Date of birth is not a valid calendar date") from e

    return DateOfBirth(iso=parsed.isoformat(), year=year)
