"""Create the database tables and, optionally, a first admin user."""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.access import ADMIN_ROLE, PREMIUM_ROLE, create_user
from neeko_stats.config import ensure_directories, settings
from neeko_stats.db.session import drop_db, init_db, session_scope
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialise the Neeko Stats database")
    parser.add_argument("--drop", action="store_true", help="Drop all tables first")
    parser.add_argument("--admin-email", help="Create an admin user with this email")
    args = parser.parse_args(argv)

    ensure_directories()
    logger.info("Using database %s", settings.database_url)
    if args.drop:
        drop_db()
    init_db()

    if args.admin_email:
        with session_scope() as session:
            user = create_user(session, args.admin_email, roles=[ADMIN_ROLE, PREMIUM_ROLE])
            token = user.api_token
        print(f"Admin {args.admin_email} created. API token: {token}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
