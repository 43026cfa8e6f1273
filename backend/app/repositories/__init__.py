"""Repository layer for data access.

Repositories encapsulate database operations and keep encryption at the
persistence boundary: callers pass and receive plaintext.
"""

from app.repositories.accounts import AccountRepository, DuplicateEmailError
from app.repositories.records import RecordRepository

__all__ = ["AccountRepository", "DuplicateEmailError", "RecordRepository"]
