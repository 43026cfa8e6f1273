"""Medical record repository.

Record payloads and attachment contents are encrypted on write and decrypted
on read. Unlike account hydration, decryption failures here propagate: a
record that cannot be read must fail loudly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.records import Record, RecordFile
from app.services.encryption import CipherEngine, get_cipher_engine


@dataclass(frozen=True)
class AttachmentUpload:
    """An uploaded file before encryption."""

    file_name: str
    mime_type: str | None
    content: bytes


@dataclass(frozen=True)
class DecryptedAttachment:
    """An attachment read back in plaintext."""

    file_name: str
    mime_type: str | None
    content: bytes


class RecordRepository:
    """Repository for encrypted medical records and their attachments."""

    def __init__(self, db: AsyncSession, cipher: CipherEngine | None = None):
        self.db = db
        self.cipher = cipher or get_cipher_engine()

    async def create(
        self,
        user_id: int,
        professional_id: int | None,
        payload: Any,
        files: Iterable[AttachmentUpload] = (),
    ) -> Record:
        """Create a record with an encrypted payload and encrypted attachments."""
        record = Record(
            user_id=user_id,
            medical_professional_id=professional_id,
            data_encrypted=self.cipher.encrypt_json(payload),
        )
        for upload in files:
            record.files.append(
                RecordFile(
                    medical_professional_id=professional_id,
                    file_name=upload.file_name,
                    mime_type=upload.mime_type,
                    file_size=len(upload.content),
                    file_encrypted=self.cipher.encrypt_buffer(upload.content),
                )
            )
        self.db.add(record)
        await self.db.flush()
        return record

    def get_payload(self, record: Record) -> Any:
        """Decrypt a record payload.

        Raises:
            MalformedCiphertext: Stored payload is not a valid envelope.
            AuthenticationFailure: Stored payload failed authentication.
        """
        return self.cipher.decrypt_json(record.data_encrypted)

    async def list_for_user(self, user_id: int) -> list[dict[str, Any]]:
        """Return a patient's records, newest first, with decrypted payloads."""
        result = await self.db.execute(
            select(Record)
            .where(Record.user_id == user_id)
            .order_by(Record.created_at.desc(), Record.id.desc())
        )
        return [
            {
                "id": record.id,
                "medical_professional_id": record.medical_professional_id,
                "data": self.get_payload(record),
                "created_at": record.created_at,
                "updated_at": record.updated_at,
            }
            for record in result.scalars().all()
        ]

    async def read_attachment(self, file_id: int) -> DecryptedAttachment | None:
        """Decrypt an attachment, or return None if it does not exist."""
        result = await self.db.execute(select(RecordFile).where(RecordFile.id == file_id))
        file_row = result.scalar_one_or_none()
        if file_row is None:
            return None
        return DecryptedAttachment(
            file_name=file_row.file_name,
            mime_type=file_row.mime_type,
            content=self.cipher.decrypt_buffer(file_row.file_encrypted),
        )
