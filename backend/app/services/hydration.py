"""Hydrate plaintext account views from encrypted storage.

The encoding of ``profile_encrypted`` changed over time. A stored value may be:

* a decoded mapping (plain profile, or an envelope read from a JSON column),
* a JSON object string holding a plain profile (pre-encryption rows),
* a JSON envelope string (current format),
* an envelope whose plaintext is itself an envelope or a JSON string
  (rows written while profiles were double-encoded),
* anything else (corrupt or truncated data).

:func:`classify_stored` inspects a value once and returns a tagged variant;
:func:`decrypt_profile` and :func:`decrypt_value` match on that variant.

Nothing in this module raises. Hydrated views feed listing endpoints
directly, so an unreadable row degrades to empty fields instead of failing
the whole response.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from app.schemas.accounts import HydratedAdmin, HydratedProfessional, HydratedUser
from app.schemas.profiles import clean_text, integer_or_none
from app.services.encryption import CipherEngine, CipherError, get_cipher_engine, is_envelope

logger = logging.getLogger(__name__)

# Upper bound on nested encodings unwrapped for a single value.
_MAX_NESTING = 3


# === Stored blob variants ===


@dataclass(frozen=True)
class Empty:
    """Nothing stored."""


@dataclass(frozen=True)
class Plain:
    """An unencrypted JSON object."""

    document: dict[str, Any]


@dataclass(frozen=True)
class EnvelopeJSON:
    """An encrypted envelope (iv, tag, ciphertext)."""

    envelope: dict[str, Any]


@dataclass(frozen=True)
class QuotedText:
    """A JSON string literal, e.g. a legacy plaintext value or a re-serialized envelope."""

    text: str


@dataclass(frozen=True)
class RawString:
    """Text that is not JSON, or JSON that is neither an object nor a string."""

    text: str


StoredBlob = Empty | Plain | EnvelopeJSON | QuotedText | RawString


def classify_stored(stored: Any) -> StoredBlob:
    """Classify a stored column value into exactly one variant."""
    if not stored:
        return Empty()
    if isinstance(stored, Mapping):
        if is_envelope(stored):
            return EnvelopeJSON(dict(stored))
        return Plain(dict(stored))
    if isinstance(stored, (bytes, bytearray, memoryview)):
        text = bytes(stored).decode("utf-8", errors="replace")
    else:
        text = str(stored)

    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        return RawString(text)

    if is_envelope(parsed):
        return EnvelopeJSON(parsed)
    if isinstance(parsed, dict):
        return Plain(parsed)
    if isinstance(parsed, str):
        return QuotedText(parsed)
    return RawString(text)


def _try_decrypt(payload: Any, cipher: CipherEngine) -> tuple[bool, Any]:
    try:
        return True, cipher.decrypt_json(payload)
    except (CipherError, ValueError, RecursionError) as e:
        logger.debug("Stored value could not be decrypted: %s", type(e).__name__)
        return False, None


def decrypt_profile(
    stored: Any, cipher: CipherEngine | None = None, *, _depth: int = 0
) -> dict[str, Any]:
    """Return the plaintext profile dict for a stored value, or {}."""
    cipher = cipher or get_cipher_engine()
    if _depth >= _MAX_NESTING:
        return {}

    match classify_stored(stored):
        case Plain(document=document):
            return document
        case EnvelopeJSON(envelope=envelope):
            ok, value = _try_decrypt(envelope, cipher)
            if not ok:
                return {}
            if isinstance(value, dict) and not is_envelope(value):
                return value
            # Double-encoded legacy row: decode the inner layer
            return decrypt_profile(value, cipher, _depth=_depth + 1)
        case QuotedText(text=text):
            return decrypt_profile(text, cipher, _depth=_depth + 1)
        case RawString(text=text):
            ok, value = _try_decrypt(text, cipher)
            if ok and isinstance(value, dict):
                return value
            return {}
        case Empty():
            return {}


def _scalar_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def decrypt_value(stored: Any, cipher: CipherEngine | None = None) -> str:
    """Return the plaintext string for a stored scalar column, or ''.

    JSON string literals are accepted as legacy plaintext.
    """
    cipher = cipher or get_cipher_engine()

    match classify_stored(stored):
        case EnvelopeJSON(envelope=envelope):
            ok, value = _try_decrypt(envelope, cipher)
            return _scalar_text(value) if ok else ""
        case QuotedText(text=text):
            return text
        case RawString(text=text):
            ok, value = _try_decrypt(text, cipher)
            return _scalar_text(value) if ok else ""
        case Plain() | Empty():
            return ""


# === Row helpers ===


def _field(row: Any, name: str) -> Any:
    """Read a column from a mapping row or an ORM object."""
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _pick(profile: Mapping[str, Any], *keys: str) -> Any:
    """Return the first truthy value among ``keys``."""
    for key in keys:
        value = profile.get(key)
        if value:
            return value
    return None


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _identifier(value: Any) -> int | str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return str(value)


def _timestamp(value: Any) -> datetime | str | None:
    if value is None or isinstance(value, (datetime, str)):
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _flag(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(value)


def _join_name(first: str | None, last: str | None) -> str | None:
    return clean_text(f"{first or ''} {last or ''}")


def _email(profile: Mapping[str, Any], row: Any, cipher: CipherEngine) -> str | None:
    return clean_text(_pick(profile, "email")) or clean_text(
        decrypt_value(_field(row, "email_encrypted"), cipher)
    )


# === Hydration ===


def hydrate_user(row: Any, cipher: CipherEngine | None = None) -> HydratedUser | None:
    """Build the plaintext patient view for a ``users`` row."""
    if row is None:
        return None
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)

    first_name = clean_text(_pick(profile, "firstName", "first_name"))
    last_name = clean_text(_pick(profile, "lastName", "last_name"))
    name = (
        clean_text(_pick(profile, "fullName", "full_name"))
        or _join_name(first_name, last_name)
        or clean_text(_pick(profile, "name"))
    )
    year_of_birth = integer_or_none(
        _first_present(
            profile.get("yearOfBirth"),
            profile.get("year_of_birth"),
            _field(row, "year_of_birth"),
        )
    )

    return HydratedUser(
        id=_identifier(_field(row, "id")),
        muid=clean_text(_field(row, "muid")),
        first_name=first_name,
        last_name=last_name,
        name=name,
        email=_email(profile, row, cipher),
        mobile=clean_text(_pick(profile, "mobile")),
        address=clean_text(_pick(profile, "address")),
        date_of_birth=clean_text(_pick(profile, "dateOfBirth", "date_of_birth")),
        year_of_birth=year_of_birth,
        is_approved=_flag(_field(row, "is_approved")),
        created_at=_timestamp(_field(row, "created_at")),
        updated_at=_timestamp(_field(row, "updated_at")),
    )


def _display_name(profile: Mapping[str, Any]) -> str | None:
    return clean_text(_pick(profile, "name", "fullName", "full_name")) or _join_name(
        clean_text(_pick(profile, "firstName", "first_name")),
        clean_text(_pick(profile, "lastName", "last_name")),
    )


def hydrate_professional(
    row: Any, cipher: CipherEngine | None = None
) -> HydratedProfessional | None:
    """Build the plaintext view for a ``medical_professionals`` row."""
    if row is None:
        return None
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)

    return HydratedProfessional(
        id=_identifier(_field(row, "id")),
        username=clean_text(_field(row, "username")),
        name=_display_name(profile),
        email=_email(profile, row, cipher),
        mobile=clean_text(_pick(profile, "mobile")),
        address=clean_text(_pick(profile, "address")),
        company=clean_text(_pick(profile, "company")),
        is_approved=_flag(_field(row, "is_approved")),
        created_at=_timestamp(_field(row, "created_at")),
        updated_at=_timestamp(_field(row, "updated_at")),
        last_login_at=_timestamp(_field(row, "last_login_at")),
    )


def hydrate_admin(row: Any, cipher: CipherEngine | None = None) -> HydratedAdmin | None:
    """Build the plaintext view for an ``admins`` row."""
    if row is None:
        return None
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)

    return HydratedAdmin(
        id=_identifier(_field(row, "id")),
        username=clean_text(_field(row, "username")),
        name=_display_name(profile),
        email=_email(profile, row, cipher),
        mobile=clean_text(_pick(profile, "mobile")),
        address=clean_text(_pick(profile, "address")),
        created_at=_timestamp(_field(row, "created_at")),
        updated_at=_timestamp(_field(row, "updated_at")),
    )


# === Composer input from stored rows (used by re-encryption) ===


def normalize_user_fields(row: Any, cipher: CipherEngine | None = None) -> dict[str, Any]:
    """Rebuild composer input from a stored ``users`` row.

    A legacy single ``name`` is split into first name and the remainder.
    """
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)

    first_name = clean_text(_pick(profile, "firstName", "first_name")) or ""
    last_name = clean_text(_pick(profile, "lastName", "last_name")) or ""
    full_name = clean_text(_pick(profile, "fullName", "full_name", "name")) or ""
    if not first_name and full_name:
        parts = full_name.split()
        first_name = parts[0]
        last_name = " ".join(parts[1:])

    return {
        "firstName": first_name,
        "lastName": last_name,
        "email": _email(profile, row, cipher) or "",
        "mobile": _pick(profile, "mobile"),
        "address": _pick(profile, "address"),
        "dateOfBirth": _pick(profile, "dateOfBirth", "date_of_birth"),
        "yearOfBirth": integer_or_none(
            _first_present(
                profile.get("yearOfBirth"),
                profile.get("year_of_birth"),
                _field(row, "year_of_birth"),
            )
        ),
    }


def normalize_professional_fields(
    row: Any, cipher: CipherEngine | None = None
) -> dict[str, Any]:
    """Rebuild composer input from a stored ``medical_professionals`` row."""
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)
    return {
        "name": _display_name(profile) or "",
        "email": _email(profile, row, cipher) or "",
        "mobile": _pick(profile, "mobile"),
        "address": _pick(profile, "address"),
        "company": _pick(profile, "company"),
    }


def normalize_admin_fields(row: Any, cipher: CipherEngine | None = None) -> dict[str, Any]:
    """Rebuild composer input from a stored ``admins`` row."""
    cipher = cipher or get_cipher_engine()
    profile = decrypt_profile(_field(row, "profile_encrypted"), cipher)
    return {
        "name": _display_name(profile) or "",
        "email": _email(profile, row, cipher) or "",
        "mobile": _pick(profile, "mobile"),
        "address": _pick(profile, "address"),
    }
