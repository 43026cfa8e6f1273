"""Pydantic schemas."""

from app.schemas.accounts import (
    AccountKind,
    AccountSecrets,
    HydratedAdmin,
    HydratedProfessional,
    HydratedUser,
)
from app.schemas.profiles import (
    AdminProfile,
    ProfessionalProfile,
    UserProfile,
    compose_admin_profile,
    compose_professional_profile,
    compose_user_profile,
)

__all__ = [
    "AccountKind",
    "AccountSecrets",
    "AdminProfile",
    "HydratedAdmin",
    "HydratedProfessional",
    "HydratedUser",
    "ProfessionalProfile",
    "UserProfile",
    "compose_admin_profile",
    "compose_professional_profile",
    "compose_user_profile",
]
