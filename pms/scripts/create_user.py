"""Create a PMS user.

Usage:
    python -m pms.scripts.create_user --email admin@example.com --name Admin \
        --password <password> [--role super_admin]
"""

from __future__ import annotations

import argparse
import sys

from pms.db.session import SessionLocal
from pms.models.user import User
from pms.services.auth import create_user
from pms.services.roles import GlobalRole


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a PMS user")
    parser.add_argument("--email", required=True, help="Login email for the new user")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--password", required=True, help="Password for the new user")
    parser.add_argument(
        "--role",
        default=GlobalRole.MEMBER.value,
        choices=[r.value for r in GlobalRole],
        help="Global role",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == args.email.strip().lower()).first()
        if existing:
            print(f"User '{args.email}' already exists.")
            sys.exit(1)

        user = create_user(db, args.email, args.name, args.password, GlobalRole(args.role))
        print(f"User '{user.email}' created successfully (id={user.id}, role={user.global_role}).")
    finally:
        db.close()


if __name__ == "__main__":
    main()
