"""Deterministic identifier hashing for exact-match lookups.

Emails are stored encrypted, so login and uniqueness checks go through a
SHA-256 fingerprint of the trimmed, lower-cased address instead. The hash is
unsalted so the same email maps to the same value for every account kind.
"""

import hashlib
from typing import Any


class InvalidIdentifier(ValueError):
    """Raised when an identifier normalizes to an empty string."""


def normalize_identifier(value: Any) -> str:
    """Trim and lower-case an identifier; None becomes ''."""
    if value is None:
        return ""
    return str(value).strip().lower()


def hash_identifier(value: Any) -> str | None:
    """Return the SHA-256 hex digest of the normalized identifier.

    Returns None for empty or missing input.
    """
    normalized = normalize_identifier(value)
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def ensure_email_hash(value: Any) -> str:
    """Hash an email, raising InvalidIdentifier if it is empty."""
    digest = hash_identifier(value)
    if digest is None:
        raise InvalidIdentifier("A valid email is required for hashing")
    return digest
