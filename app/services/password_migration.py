"""Legacy password migration: rewrite plaintext password_hash values as bcrypt."""

import logging
from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.security import (
    BCRYPT_PREFIXES,
    LegacyPlainPassword,
    classify_stored_password,
    hash_password,
)
from app.models import User

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def _legacy_filter():
    return (
        User.password_hash.isnot(None),
        User.password_hash != "",
        ~or_(*[User.password_hash.startswith(prefix) for prefix in BCRYPT_PREFIXES]),
    )


def count_legacy_passwords(session: Session) -> int:
    return session.query(User).filter(*_legacy_filter()).count()


def run_password_migration(session: Session, settings: "Settings") -> int:
    """
    Hash every remaining legacy plaintext password, committing per batch.

    Returns the number of rows rewritten. Idempotent: safe to run repeatedly.
    """
    migrated = 0
    while True:
        batch = (
            session.query(User)
            .filter(*_legacy_filter())
            .order_by(User.id)
            .limit(settings.PASSWORD_MIGRATION_BATCH_SIZE)
            .all()
        )
        if not batch:
            break
        for user in batch:
            tagged = classify_stored_password(user.password_hash)
            if isinstance(tagged, LegacyPlainPassword):
                user.password_hash = hash_password(tagged.value)
                migrated += 1
        session.commit()
        logger.info("Password migration batch committed: rows=%s", len(batch))
        if len(batch) < settings.PASSWORD_MIGRATION_BATCH_SIZE:
            break

    if migrated > 0:
        logger.info("Password migration run: passwords_migrated=%s", migrated)
    return migrated
