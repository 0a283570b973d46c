"""
CLI entrypoint for the legacy password migration. Run once after deploying, or from cron:

  python -m app.password_migration

Use --dry-run to only count the rows that still hold plaintext.
"""

import argparse
import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.password_migration import count_legacy_passwords, run_password_migration

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Rewrite legacy plaintext passwords as bcrypt hashes."""
    parser = argparse.ArgumentParser(description="Hash legacy plaintext passwords.")
    parser.add_argument("--dry-run", action="store_true", help="Only count legacy rows")
    args = parser.parse_args()

    settings = get_settings()
    db = SessionLocal()
    try:
        if args.dry_run:
            logger.info("Legacy passwords remaining: %s", count_legacy_passwords(db))
            return 0
        migrated = run_password_migration(db, settings)
        logger.info("Password migration completed: passwords_migrated=%s", migrated)
        return 0
    except Exception as e:
        logger.exception("Password migration failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
