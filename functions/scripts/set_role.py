"""
Set the role of a user profile, e.g. to bootstrap the first administrator.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accountify.config import get_settings
from accountify.db import ProfileRecord
from accountify.dependencies import get_db_client
from accountify.enums import UserRole
from accountify.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Set a user's role")
    parser.add_argument("user_id", help="Profile id (the token subject)")
    parser.add_argument(
        "role",
        choices=[role.value for role in UserRole],
        help="Role to assign",
    )
    parser.add_argument(
        "--email",
        default=None,
        help="Email for a profile that does not exist yet",
    )
    parser.add_argument(
        "--create",
        action="store_true",
        help="Create the profile when it is missing",
    )
    args = parser.parse_args()

    configure_logging(get_settings().log_level)
    db = get_db_client()
    role = UserRole(args.role)

    profile = db.update_profile_role(args.user_id, role)
    if profile is None:
        if not args.create:
            logger.error("No profile with id %s (use --create)", args.user_id)
            return 1
        profile = db.save_profile(
            ProfileRecord(id=args.user_id, role=role, email=args.email)
        )
        logger.info("Created profile %s", profile.id)
    logger.info("%s is now %s", profile.display_name, profile.role.value)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
