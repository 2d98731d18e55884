"""
Mint a tracking API key for an owner and print the raw key once.
"""

from __future__ import annotations

import argparse
import sys

from churnpulse.core.db import Base, SessionLocal, engine
from churnpulse.crud.api_keys import create_api_key, revoke_api_key
import churnpulse.models  # noqa: F401


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage tracking API keys.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a new active key")
    create.add_argument("owner_id", help="Owner (dashboard user id) the key belongs to")
    create.add_argument("--name", default=None, help="Optional label shown in the dashboard")

    revoke = sub.add_parser("revoke", help="Deactivate an existing key")
    revoke.add_argument("owner_id")
    revoke.add_argument("key_id", type=int)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        if args.command == "create":
            api_key, raw_key = create_api_key(db, args.owner_id, name=args.name)
            print(f"id={api_key.id} prefix={api_key.key_prefix}")
            print(raw_key)
            return 0
        revoked = revoke_api_key(db, args.owner_id, args.key_id)
        if revoked is None:
            print(f"No key {args.key_id} for owner {args.owner_id}", file=sys.stderr)
            return 1
        print(f"revoked id={revoked.id}")
        return 0


if __name__ == "__main__":
    sys.exit(main())
