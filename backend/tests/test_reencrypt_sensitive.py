"""Tests for the sensitive-data re-encryption script."""

import json
import logging

import pytest

from app.models.accounts import Admin, MedicalProfessional, User
from app.schemas.accounts import AccountKind
from app.scripts import reencrypt_sensitive
from app.scripts.reencrypt_sensitive import is_current, refresh_accounts
from app.services.hydration import hydrate_user
from app.services.identifiers import hash_identifier
from app.services.secrets import build_admin_secrets, build_user_secrets


def _legacy_user(cipher) -> User:
    """A user written while profiles were double-encoded, with a single name."""
    inner = cipher.encrypt_json({"name": "Alice Doe", "email": "alice@ex.com"})
    return User(
        id=1,
        muid="MI9000010510",
        password_hash="hash",
        email_hash=None,
        email_encrypted=json.dumps("alice@ex.com"),
        profile_encrypted=cipher.encrypt_json(inner),
        year_of_birth=None,
    )


class TestRefreshAccounts:
    """Tests for refresh_accounts."""

    @pytest.mark.asyncio
    async def test_rewrites_legacy_user(self, mock_db, make_result, cipher):
        user = _legacy_user(cipher)
        mock_db.execute.return_value = make_result(rows=[user])

        updated = await refresh_accounts(mock_db, AccountKind.USER, cipher)

        assert updated == 1
        assert user.email_hash == hash_identifier("alice@ex.com")
        assert cipher.decrypt_json(user.email_encrypted) == "alice@ex.com"
        profile = cipher.decrypt_json(user.profile_encrypted)
        assert profile["firstName"] == "Alice"
        assert profile["lastName"] == "Doe"
        assert profile["fullName"] == "Alice Doe"
        assert user.updated_at is not None
        mock_db.flush.assert_awaited_once()

        view = hydrate_user(user, cipher)
        assert view.name == "Alice Doe"
        assert view.email == "alice@ex.com"

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, mock_db, make_result, cipher):
        user = _legacy_user(cipher)
        mock_db.execute.return_value = make_result(rows=[user])

        assert await refresh_accounts(mock_db, AccountKind.USER, cipher) == 1
        profile_after_first = user.profile_encrypted
        assert await refresh_accounts(mock_db, AccountKind.USER, cipher) == 0
        assert user.profile_encrypted == profile_after_first

    @pytest.mark.asyncio
    async def test_skips_account_without_email(self, mock_db, make_result, cipher, caplog):
        user = User(
            id=3,
            muid="MI0000000000",
            email_hash=None,
            email_encrypted="",
            profile_encrypted=cipher.encrypt_json({"firstName": "Nomail"}),
        )
        original_profile = user.profile_encrypted
        mock_db.execute.return_value = make_result(rows=[user])

        with caplog.at_level(logging.WARNING, logger="app.scripts.reencrypt_sensitive"):
            updated = await refresh_accounts(mock_db, AccountKind.USER, cipher)

        assert updated == 0
        assert user.profile_encrypted == original_profile
        assert "Skipping user 3 due to missing email" in caplog.text

    @pytest.mark.asyncio
    async def test_backfills_year_of_birth(self, mock_db, make_result, cipher):
        secrets = build_user_secrets(
            {"firstName": "Alice", "email": "alice@ex.com", "yearOfBirth": 1990}, cipher
        )
        user = User(
            id=1,
            muid="MI9000010510",
            email_hash=secrets.email_hash,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=secrets.profile_encrypted,
            year_of_birth=None,
        )
        mock_db.execute.return_value = make_result(rows=[user])

        updated = await refresh_accounts(mock_db, AccountKind.USER, cipher)

        assert updated == 1
        assert user.year_of_birth == 1990
        # Secrets were already current
        assert user.profile_encrypted == secrets.profile_encrypted

    @pytest.mark.asyncio
    async def test_keeps_year_when_profile_has_none(self, mock_db, make_result, cipher):
        secrets = build_user_secrets({"firstName": "Alice", "email": "alice@ex.com"}, cipher)
        user = User(
            id=1,
            muid="MI9000010510",
            email_hash=secrets.email_hash,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=secrets.profile_encrypted,
            year_of_birth=1985,
        )
        mock_db.execute.return_value = make_result(rows=[user])

        await refresh_accounts(mock_db, AccountKind.USER, cipher)

        assert user.year_of_birth == 1985

    @pytest.mark.asyncio
    async def test_professionals_and_admins(self, mock_db, make_result, cipher):
        professional = MedicalProfessional(
            id=1,
            username="mgrey",
            email_hash=None,
            email_encrypted=cipher.encrypt_json("grey@sgh.org"),
            profile_encrypted=json.dumps({"name": "Dr. Grey", "company": "SGH"}),
        )
        mock_db.execute.return_value = make_result(rows=[professional])
        assert await refresh_accounts(mock_db, AccountKind.MEDICAL_PROFESSIONAL, cipher) == 1
        assert professional.email_hash == hash_identifier("grey@sgh.org")
        assert cipher.decrypt_json(professional.profile_encrypted)["company"] == "SGH"

        secrets = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        admin = Admin(
            id=1,
            username="root",
            email_hash=secrets.email_hash,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=secrets.profile_encrypted,
        )
        mock_db.execute.return_value = make_result(rows=[admin])
        assert await refresh_accounts(mock_db, AccountKind.ADMIN, cipher) == 0


class TestIsCurrent:
    def test_fresh_secrets_are_current(self, cipher):
        secrets = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        admin = Admin(
            email_hash=secrets.email_hash,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=secrets.profile_encrypted,
        )
        rebuilt = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        assert is_current(admin, rebuilt, cipher)

    def test_hash_mismatch(self, cipher):
        secrets = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        admin = Admin(
            email_hash="0" * 64,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=secrets.profile_encrypted,
        )
        assert not is_current(admin, secrets, cipher)

    def test_double_encoded_profile_is_not_current(self, cipher):
        secrets = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        admin = Admin(
            email_hash=secrets.email_hash,
            email_encrypted=secrets.email_encrypted,
            profile_encrypted=cipher.encrypt_json(secrets.profile_encrypted),
        )
        assert not is_current(admin, secrets, cipher)

    def test_undecryptable_is_not_current(self, cipher, other_cipher):
        secrets = build_admin_secrets({"name": "Root", "email": "root@example.com"}, cipher)
        admin = Admin(
            email_hash=secrets.email_hash,
            email_encrypted=other_cipher.encrypt_json("root@example.com"),
            profile_encrypted=secrets.profile_encrypted,
        )
        assert not is_current(admin, secrets, cipher)


def test_script_has_main():
    """Test script exposes a main entry point."""
    assert hasattr(reencrypt_sensitive, "main")
    assert callable(reencrypt_sensitive.main)
