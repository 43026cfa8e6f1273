"""Tests for RecordRepository."""

import pytest

from app.models.records import Record, RecordFile
from app.repositories.records import AttachmentUpload, DecryptedAttachment, RecordRepository
from app.services.encryption import AuthenticationFailure, MalformedCiphertext

PAYLOAD = {"diagnosis": "Hypertension", "notes": "Recheck in 3 months", "bp": [142, 91]}


@pytest.fixture
def repo(mock_db, cipher) -> RecordRepository:
    return RecordRepository(mock_db, cipher)


class TestCreate:
    """Tests for record creation."""

    @pytest.mark.asyncio
    async def test_encrypts_payload(self, repo, mock_db, cipher):
        record = await repo.create(user_id=1, professional_id=2, payload=PAYLOAD)

        mock_db.add.assert_called_once_with(record)
        mock_db.flush.assert_awaited_once()
        assert "Hypertension" not in record.data_encrypted
        assert cipher.decrypt_json(record.data_encrypted) == PAYLOAD
        assert record.user_id == 1
        assert record.medical_professional_id == 2

    @pytest.mark.asyncio
    async def test_encrypts_attachments(self, repo, cipher):
        content = b"%PDF-1.7 lab results"
        record = await repo.create(
            user_id=1,
            professional_id=2,
            payload=PAYLOAD,
            files=[AttachmentUpload("labs.pdf", "application/pdf", content)],
        )

        [attachment] = record.files
        assert isinstance(attachment, RecordFile)
        assert attachment.file_name == "labs.pdf"
        assert attachment.file_size == len(content)
        assert content not in attachment.file_encrypted
        assert cipher.decrypt_buffer(attachment.file_encrypted) == content

    @pytest.mark.asyncio
    async def test_without_attachments(self, repo):
        record = await repo.create(user_id=1, professional_id=None, payload="free text")
        assert record.files == []


class TestGetPayload:
    def test_decrypts_payload(self, repo, cipher):
        record = Record(id=1, user_id=1, data_encrypted=cipher.encrypt_json(PAYLOAD))
        assert repo.get_payload(record) == PAYLOAD

    def test_wrong_key_fails_loudly(self, repo, other_cipher):
        record = Record(id=1, user_id=1, data_encrypted=other_cipher.encrypt_json(PAYLOAD))
        with pytest.raises(AuthenticationFailure):
            repo.get_payload(record)

    def test_corrupt_payload_fails_loudly(self, repo):
        record = Record(id=1, user_id=1, data_encrypted="not an envelope")
        with pytest.raises(MalformedCiphertext):
            repo.get_payload(record)


class TestListForUser:
    @pytest.mark.asyncio
    async def test_returns_decrypted_records(self, repo, mock_db, make_result, cipher):
        rows = [
            Record(id=2, user_id=1, medical_professional_id=5, data_encrypted=cipher.encrypt_json("second")),
            Record(id=1, user_id=1, medical_professional_id=None, data_encrypted=cipher.encrypt_json(PAYLOAD)),
        ]
        mock_db.execute.return_value = make_result(rows=rows)

        records = await repo.list_for_user(1)

        assert [record["id"] for record in records] == [2, 1]
        assert records[0]["data"] == "second"
        assert records[0]["medical_professional_id"] == 5
        assert records[1]["data"] == PAYLOAD

    @pytest.mark.asyncio
    async def test_empty(self, repo):
        assert await repo.list_for_user(1) == []


class TestReadAttachment:
    @pytest.mark.asyncio
    async def test_decrypts_content(self, repo, mock_db, make_result, cipher):
        file_row = RecordFile(
            id=7,
            record_id=1,
            file_name="xray.png",
            mime_type="image/png",
            file_size=4,
            file_encrypted=cipher.encrypt_buffer(b"\x89PNG"),
        )
        mock_db.execute.return_value = make_result(scalar=file_row)

        attachment = await repo.read_attachment(7)

        assert attachment == DecryptedAttachment("xray.png", "image/png", b"\x89PNG")

    @pytest.mark.asyncio
    async def test_missing_file(self, repo):
        assert await repo.read_attachment(99) is None

    @pytest.mark.asyncio
    async def test_tampered_content_fails(self, repo, mock_db, make_result, cipher):
        blob = bytearray(cipher.encrypt_buffer(b"secret scan"))
        blob[-1] ^= 0x01
        file_row = RecordFile(id=7, record_id=1, file_name="scan.bin", file_size=11, file_encrypted=bytes(blob))
        mock_db.execute.return_value = make_result(scalar=file_row)

        with pytest.raises(AuthenticationFailure):
            await repo.read_attachment(7)
