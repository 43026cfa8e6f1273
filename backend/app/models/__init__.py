"""SQLAlchemy models."""

from app.models.accounts import Admin, MedicalProfessional, User
from app.models.records import Record, RecordFile

__all__ = [
    "Admin",
    "MedicalProfessional",
    "Record",
    "RecordFile",
    "User",
]
