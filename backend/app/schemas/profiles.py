"""Canonical plaintext profiles, one per account kind.

Profiles are what gets encrypted into ``profile_encrypted``. They serialize
with camelCase keys (``firstName``, ``dateOfBirth``...) because that is the
shape already stored in existing rows; input may use either camelCase or
snake_case names.

Composition is pure: strings are trimmed, emails are lower-cased to match
their lookup hash and empty values become None. Derived fields are always
recomputed, so the same input yields the same document.
"""

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def clean_text(value: Any) -> str | None:
    """Trim a value to a string, mapping empty results to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clean_email(value: Any) -> str | None:
    """Trim and lower-case an email address, mapping empty results to None."""
    text = clean_text(value)
    return text.lower() if text else None


def integer_or_none(value: Any) -> int | None:
    """Pass integers through; everything else (bools included) becomes None."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


Text = Annotated[str | None, BeforeValidator(clean_text)]
Email = Annotated[str | None, BeforeValidator(clean_email)]
Year = Annotated[int | None, BeforeValidator(integer_or_none)]


class _Profile(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase dict that is stored encrypted."""
        return self.model_dump(by_alias=True)


class UserProfile(_Profile):
    """Patient profile. ``full_name`` is always derived from the name parts."""

    first_name: Text = None
    last_name: Text = None
    full_name: Text = None
    email: Email = None
    mobile: Text = None
    address: Text = None
    date_of_birth: Text = None  # ISO YYYY-MM-DD
    year_of_birth: Year = None

    @model_validator(mode="after")
    def _derive_full_name(self) -> "UserProfile":
        self.full_name = f"{self.first_name or ''} {self.last_name or ''}".strip() or None
        return self


class ProfessionalProfile(_Profile):
    """Medical professional profile."""

    name: Text = None
    email: Email = None
    mobile: Text = None
    address: Text = None
    company: Text = None


class AdminProfile(_Profile):
    """Administrator profile."""

    name: Text = None
    email: Email = None
    mobile: Text = None
    address: Text = None


def compose_user_profile(fields: Mapping[str, Any]) -> UserProfile:
    return UserProfile.model_validate(dict(fields))


def compose_professional_profile(fields: Mapping[str, Any]) -> ProfessionalProfile:
    return ProfessionalProfile.model_validate(dict(fields))


def compose_admin_profile(fields: Mapping[str, Any]) -> AdminProfile:
    return AdminProfile.model_validate(dict(fields))
