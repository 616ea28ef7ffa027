#!/usr/bin/env python3
"""
AuthGate -- operator command line.

Usage:
  python main.py create-admin --email admin@example.com --password 's3cret!' \
      --first-name Ada --last-name Admin
  python main.py purge-revocations

Both commands read the same settings as the API (DATABASE_URL, SECRET_KEY,
DEBUG, ...) from the environment or .env, so they act on the server's database.

Registration through the API always creates role "user"; create-admin is the
only path that creates an administrator.
"""

import argparse
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.service import validate_registration
from auth.store import RevocationStore, UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _create_admin(args: argparse.Namespace) -> int:
    problem = validate_registration(args.email, args.password, args.first_name, args.last_name)
    if problem is not None:
        print(f"  [!] {problem}")
        return 2

    settings = get_settings()
    store = UserStore(settings.database_url, timeout=settings.store_timeout_seconds)
    try:
        user_id = store.create_user(
            User(
                email=args.email,
                hashed_password=hash_password(args.password),
                first_name=args.first_name,
                last_name=args.last_name,
                role=Role.admin.value,
            )
        )
    except IntegrityError:
        print(f"  [!] '{args.email}' is already registered.")
        return 1
    finally:
        store.close()

    print(f"  Created admin {args.email} (id {user_id})")
    return 0


def _purge_revocations(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = RevocationStore(settings.database_url, timeout=settings.store_timeout_seconds)
    try:
        removed = store.purge_expired()
    finally:
        store.close()
    print(f"  Removed {removed} expired revocation record(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="AuthGate operator commands.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create an administrator account.")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--first-name", default="Admin")
    create.add_argument("--last-name", default="User")
    create.set_defaults(func=_create_admin)

    purge = sub.add_parser("purge-revocations", help="Delete revocation records for expired tokens.")
    purge.set_defaults(func=_purge_revocations)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
