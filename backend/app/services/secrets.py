"""Build the encrypted secrets tuple for an account.

Used identically at registration, on every profile update and by the
re-encryption script: the whole tuple is regenerated each time, never
patched field by field.

A missing email yields ``email_hash=None``. Callers must reject that before
persisting (see :func:`app.services.identifiers.ensure_email_hash`).
"""

from collections.abc import Mapping
from typing import Any

from app.schemas.accounts import AccountSecrets
from app.schemas.profiles import (
    AdminProfile,
    ProfessionalProfile,
    UserProfile,
    compose_admin_profile,
    compose_professional_profile,
    compose_user_profile,
)
from app.services.encryption import CipherEngine, get_cipher_engine
from app.services.identifiers import hash_identifier


def _seal_profile(
    profile: UserProfile | ProfessionalProfile | AdminProfile,
    cipher: CipherEngine | None,
) -> AccountSecrets:
    cipher = cipher or get_cipher_engine()
    email = profile.email or ""
    return AccountSecrets(
        email_hash=hash_identifier(email),
        email_encrypted=cipher.encrypt_json(email),
        profile_encrypted=cipher.encrypt_json(profile.to_document()),
    )


def build_user_secrets(
    fields: Mapping[str, Any], cipher: CipherEngine | None = None
) -> AccountSecrets:
    """Compose a patient profile and encrypt it with its email."""
    return _seal_profile(compose_user_profile(fields), cipher)


def build_professional_secrets(
    fields: Mapping[str, Any], cipher: CipherEngine | None = None
) -> AccountSecrets:
    """Compose a medical professional profile and encrypt it with its email."""
    return _seal_profile(compose_professional_profile(fields), cipher)


def build_admin_secrets(
    fields: Mapping[str, Any], cipher: CipherEngine | None = None
) -> AccountSecrets:
    """Compose an admin profile and encrypt it with its email."""
    return _seal_profile(compose_admin_profile(fields), cipher)
