"""Account repository.

Every write goes through the secrets builder so the email hash, the encrypted
email and the encrypted profile are always replaced together. Lookups by
email use the hash; plaintext never reaches a WHERE clause.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounts import Admin, MedicalProfessional, User
from app.schemas.accounts import AccountKind, AccountSecrets
from app.schemas.profiles import compose_user_profile
from app.services.encryption import CipherEngine, get_cipher_engine
from app.services.hydration import hydrate_admin, hydrate_professional, hydrate_user
from app.services.identifiers import InvalidIdentifier, hash_identifier
from app.services.secrets import (
    build_admin_secrets,
    build_professional_secrets,
    build_user_secrets,
)
from app.utils.dates import normalize_date_of_birth
from app.utils.muid import generate_muid

Account = User | MedicalProfessional | Admin

ACCOUNT_MODELS: dict[AccountKind, type[Account]] = {
    AccountKind.USER: User,
    AccountKind.MEDICAL_PROFESSIONAL: MedicalProfessional,
    AccountKind.ADMIN: Admin,
}

SECRET_BUILDERS: dict[AccountKind, Callable[..., AccountSecrets]] = {
    AccountKind.USER: build_user_secrets,
    AccountKind.MEDICAL_PROFESSIONAL: build_professional_secrets,
    AccountKind.ADMIN: build_admin_secrets,
}

HYDRATORS: dict[AccountKind, Callable[..., BaseModel | None]] = {
    AccountKind.USER: hydrate_user,
    AccountKind.MEDICAL_PROFESSIONAL: hydrate_professional,
    AccountKind.ADMIN: hydrate_admin,
}


class DuplicateEmailError(ValueError):
    """Raised when an email hash is already registered for the account kind."""

    pass


def _apply_secrets(account: Account, secrets: AccountSecrets) -> None:
    account.email_hash = secrets.email_hash
    account.email_encrypted = secrets.email_encrypted
    account.profile_encrypted = secrets.profile_encrypted


class AccountRepository:
    """Repository for patient, professional and admin accounts."""

    def __init__(self, db: AsyncSession, cipher: CipherEngine | None = None):
        """Initialize repository with database session.

        Args:
            db: Async SQLAlchemy session.
            cipher: Cipher engine; defaults to the process-wide engine.
        """
        self.db = db
        self.cipher = cipher or get_cipher_engine()

    def build_secrets(self, kind: AccountKind, fields: Mapping[str, Any]) -> AccountSecrets:
        """Build secrets for ``fields``, rejecting an empty email.

        Raises:
            InvalidIdentifier: The composed email is empty.
        """
        secrets = SECRET_BUILDERS[kind](fields, self.cipher)
        if secrets.email_hash is None:
            raise InvalidIdentifier("A valid email is required")
        return secrets

    async def find_by_email(self, kind: AccountKind, email: str | None) -> Account | None:
        """Find an account by email through its hash (login lookup)."""
        email_hash = hash_identifier(email)
        if email_hash is None:
            return None
        model = ACCOUNT_MODELS[kind]
        result = await self.db.execute(select(model).where(model.email_hash == email_hash))
        return result.scalar_one_or_none()

    async def get_by_id(self, kind: AccountKind, account_id: int) -> Account | None:
        model = ACCOUNT_MODELS[kind]
        result = await self.db.execute(select(model).where(model.id == account_id))
        return result.scalar_one_or_none()

    async def _ensure_unique_email(
        self, kind: AccountKind, email_hash: str, exclude_id: int | None = None
    ) -> None:
        model = ACCOUNT_MODELS[kind]
        query = select(model.id).where(model.email_hash == email_hash)
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await self.db.execute(query)
        if result.scalar_one_or_none() is not None:
            raise DuplicateEmailError("Email already registered")

    async def register_user(self, fields: Mapping[str, Any], password_hash: str) -> User:
        """Register a patient pending admin approval.

        ``fields`` carries the profile input with a ``MM/DD/YYYY`` date of
        birth under ``dateOfBirth``.

        Raises:
            InvalidDateOfBirth: Date of birth missing or invalid.
            InvalidIdentifier: Email missing.
            DuplicateEmailError: Email already registered.
            InvalidMuidInput: First and last name both empty.
        """
        dob = normalize_date_of_birth(fields.get("dateOfBirth") or fields.get("date_of_birth"))
        profile_fields = {
            key: value
            for key, value in fields.items()
            if key not in ("date_of_birth", "year_of_birth")
        }
        profile_fields.update(dateOfBirth=dob.iso, yearOfBirth=dob.year)

        secrets = self.build_secrets(AccountKind.USER, profile_fields)
        await self._ensure_unique_email(AccountKind.USER, secrets.email_hash)

        full_name = compose_user_profile(profile_fields).full_name or ""
        user = User(
            muid=generate_muid(full_name, dob.year),
            password_hash=password_hash,
            year_of_birth=dob.year,
            is_approved=False,
        )
        _apply_secrets(user, secrets)
        self.db.add(user)
        await self.db.flush()
        return user

    async def register_professional(
        self, fields: Mapping[str, Any], username: str, password_hash: str
    ) -> MedicalProfessional:
        """Register a medical professional pending admin approval."""
        secrets = self.build_secrets(AccountKind.MEDICAL_PROFESSIONAL, fields)
        await self._ensure_unique_email(AccountKind.MEDICAL_PROFESSIONAL, secrets.email_hash)

        professional = MedicalProfessional(
            username=username.strip().lower(),
            password_hash=password_hash,
            is_approved=False,
        )
        _apply_secrets(professional, secrets)
        self.db.add(professional)
        await self.db.flush()
        return professional

    async def create_admin(
        self, fields: Mapping[str, Any], username: str, password_hash: str
    ) -> Admin:
        """Create an administrator account."""
        secrets = self.build_secrets(AccountKind.ADMIN, fields)
        await self._ensure_unique_email(AccountKind.ADMIN, secrets.email_hash)

        admin = Admin(username=username.strip().lower(), password_hash=password_hash)
        _apply_secrets(admin, secrets)
        self.db.add(admin)
        await self.db.flush()
        return admin

    async def update_profile(
        self, kind: AccountKind, account: Account, fields: Mapping[str, Any]
    ) -> Account:
        """Replace an account's profile, regenerating all three secrets.

        Raises:
            InvalidIdentifier: Email missing.
            DuplicateEmailError: Email belongs to another account of this kind.
        """
        secrets = self.build_secrets(kind, fields)
        await self._ensure_unique_email(kind, secrets.email_hash, exclude_id=account.id)

        _apply_secrets(account, secrets)
        if kind is AccountKind.USER:
            year_of_birth = compose_user_profile(fields).year_of_birth
            if year_of_birth is not None:
                account.year_of_birth = year_of_birth
        account.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return account

    async def list_hydrated(self, kind: AccountKind) -> list[BaseModel]:
        """Return plaintext views of every account of ``kind``."""
        model = ACCOUNT_MODELS[kind]
        result = await self.db.execute(select(model).order_by(model.id))
        return [self.hydrate(kind, account) for account in result.scalars().all()]

    def hydrate(self, kind: AccountKind, account: Account | None) -> BaseModel | None:
        """Return the plaintext view of an account, or None if absent."""
        return HYDRATORS[kind](account, self.cipher)
