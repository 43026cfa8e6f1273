"""Account models.

Personal data lives only in the three encrypted columns:

* ``email_hash`` - SHA-256 of the normalized email, unique per table, used
  for login lookup.
* ``email_encrypted`` - JSON envelope over the plaintext email.
* ``profile_encrypted`` - JSON envelope over the camelCase profile document.

Use :mod:`app.services.secrets` to produce them and
:mod:`app.services.hydration` to read them back.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class _EncryptedAccountMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)

    email_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    profile_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class User(_EncryptedAccountMixin, Base):
    """Patient account."""

    __tablename__ = "users"

    muid: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    year_of_birth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, muid={self.muid})>"


class MedicalProfessional(_EncryptedAccountMixin, Base):
    """Medical professional account. Requires admin approval."""

    __tablename__ = "medical_professionals"

    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<MedicalProfessional(id={self.id}, username={self.username})>"


class Admin(_EncryptedAccountMixin, Base):
    """Administrator account."""

    __tablename__ = "admins"

    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Admin(id={self.id}, username={self.username})>"
