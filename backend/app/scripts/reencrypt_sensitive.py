"""Re-encrypt account secrets under the current profile format.

Reads every account, hydrates it (tolerating legacy encodings), recomposes
the profile and rewrites the email hash, encrypted email and encrypted
profile. Accounts whose stored secrets already decrypt to the recomposed
values are left untouched, so the script can be run repeatedly.

Usage:
    uv run python -m app.scripts.reencrypt_sensitive [--dry-run]

Account kinds are processed concurrently, each in its own session.
"""

import argparse
import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session_maker
from app.repositories.accounts import ACCOUNT_MODELS, SECRET_BUILDERS, Account
from app.schemas.accounts import AccountKind, AccountSecrets
from app.services.encryption import CipherEngine, CipherError, get_cipher_engine
from app.services.hydration import (
    normalize_admin_fields,
    normalize_professional_fields,
    normalize_user_fields,
)

logger = logging.getLogger(__name__)

NORMALIZERS: dict[AccountKind, Callable[..., dict[str, Any]]] = {
    AccountKind.USER: normalize_user_fields,
    AccountKind.MEDICAL_PROFESSIONAL: normalize_professional_fields,
    AccountKind.ADMIN: normalize_admin_fields,
}


def is_current(account: Account, secrets: AccountSecrets, cipher: CipherEngine) -> bool:
    """True if the stored secrets already hold the recomposed plaintext.

    Stored values must be single-layer envelopes; legacy encodings are
    always rewritten.
    """
    if account.email_hash != secrets.email_hash:
        return False
    try:
        stored_email = cipher.decrypt_json(account.email_encrypted)
        stored_profile = cipher.decrypt_json(account.profile_encrypted)
    except CipherError:
        return False
    return stored_email == cipher.decrypt_json(
        secrets.email_encrypted
    ) and stored_profile == cipher.decrypt_json(secrets.profile_encrypted)


async def refresh_accounts(
    session: AsyncSession, kind: AccountKind, cipher: CipherEngine
) -> int:
    """Re-encrypt every account of ``kind``.

    Returns:
        Number of accounts updated.
    """
    model = ACCOUNT_MODELS[kind]
    result = await session.execute(select(model).order_by(model.id))

    updated = 0
    for account in result.scalars().all():
        fields = NORMALIZERS[kind](account, cipher)
        secrets = SECRET_BUILDERS[kind](fields, cipher)

        if not secrets.email_hash:
            logger.warning("Skipping %s %s due to missing email", kind.value, account.id)
            continue

        changed = False
        if not is_current(account, secrets, cipher):
            account.email_hash = secrets.email_hash
            account.email_encrypted = secrets.email_encrypted
            account.profile_encrypted = secrets.profile_encrypted
            changed = True

        if kind is AccountKind.USER:
            next_year = fields["yearOfBirth"]
            if next_year is None:
                next_year = account.year_of_birth
            if next_year != account.year_of_birth:
                account.year_of_birth = next_year
                changed = True

        if changed:
            account.updated_at = datetime.now(timezone.utc)
            updated += 1

    await session.flush()
    return updated


async def _refresh_kind(kind: AccountKind, cipher: CipherEngine, dry_run: bool) -> int:
    async with async_session_maker() as session:
        updated = await refresh_accounts(session, kind, cipher)
        if dry_run:
            await session.rollback()
        else:
            await session.commit()
    logger.info("Refreshed %s accounts: %d updated", kind.value, updated)
    return updated


async def reencrypt_sensitive(dry_run: bool = False) -> dict[str, int]:
    """Refresh all account kinds.

    Returns:
        Dictionary with counts: users_updated, professionals_updated,
        admins_updated.
    """
    cipher = get_cipher_engine()
    users, professionals, admins = await asyncio.gather(
        _refresh_kind(AccountKind.USER, cipher, dry_run),
        _refresh_kind(AccountKind.MEDICAL_PROFESSIONAL, cipher, dry_run),
        _refresh_kind(AccountKind.ADMIN, cipher, dry_run),
    )
    return {
        "users_updated": users,
        "professionals_updated": professionals,
        "admins_updated": admins,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Re-encrypt sensitive account data")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many accounts would change without committing",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    stats = asyncio.run(reencrypt_sensitive(dry_run=args.dry_run))
    print(f"Sensitive data refreshed{' (dry run)' if args.dry_run else ''}: {stats}")


if __name__ == "__main__":
    main()
