"""Schemas for encrypted account secrets and hydrated account views."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class AccountKind(str, Enum):
    """Account kinds, each stored in its own table."""

    USER = "user"
    MEDICAL_PROFESSIONAL = "medical_professional"
    ADMIN = "admin"


class AccountSecrets(BaseModel):
    """The three encrypted columns persisted per account.

    All three must be written together: a hash that does not match the
    encrypted email breaks login lookup.
    """

    model_config = ConfigDict(frozen=True)

    email_hash: str | None
    email_encrypted: str
    profile_encrypted: str


# === Hydrated views (plaintext, returned to API callers) ===


class HydratedUser(BaseModel):
    """Plaintext patient view."""

    id: int | str | None = None
    muid: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    email: str | None = None
    mobile: str | None = None
    address: str | None = None
    date_of_birth: str | None = None
    year_of_birth: int | None = None
    is_approved: bool | None = None
    created_at: datetime | str | None = None
    updated_at: datetime | str | None = None


class HydratedProfessional(BaseModel):
    """Plaintext medical professional view."""

    id: int | str | None = None
    username: str | None = None
    name: str | None = None
    email: str | None = None
    mobile: str | None = None
    address: str | None = None
    company: str | None = None
    is_approved: bool | None = None
    created_at: datetime | str | None = None
    updated_at: datetime | str | None = None
    last_login_at: datetime | str | None = None


class HydratedAdmin(BaseModel):
    """Plaintext administrator view."""

    id: int | str | None = None
    username: str | None = None
    name: str | None = None
    email: str | None = None
    mobile: str | None = None
    address: str | None = None
    created_at: datetime | str | None = None
    updated_at: datetime | str | None = None
