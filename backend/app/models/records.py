"""Medical record models.

Record payloads are stored as JSON envelopes (``encrypt_json``); attachment
contents as binary ``iv || tag || ciphertext`` blobs (``encrypt_buffer``).
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, LargeBinary, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Record(Base):
    """A medical record written by a professional for a patient."""

    __tablename__ = "records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    medical_professional_id: Mapped[int | None] = mapped_column(
        ForeignKey("medical_professionals.id", ondelete="SET NULL"), nullable=True
    )
    data_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    files: Mapped[list["RecordFile"]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Record(id={self.id}, user_id={self.user_id})>"


class RecordFile(Base):
    """Encrypted file attached to a record."""

    __tablename__ = "record_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    record_id: Mapped[int] = mapped_column(
        ForeignKey("records.id", ondelete="CASCADE"), nullable=False, index=True
    )
    medical_professional_id: Mapped[int | None] = mapped_column(
        ForeignKey("medical_professionals.id", ondelete="SET NULL"), nullable=True
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_encrypted: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    record: Mapped["Record"] = relationship(back_populates="files")

    def __repr__(self) -> str:
        return f"<RecordFile(id={self.id}, file_name={self.file_name})>"
