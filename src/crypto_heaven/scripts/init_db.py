"""Create the schema and reconcile membership rows.

Run after importing data from another store:

    python -m crypto_heaven.scripts.init_db --repair
"""
from __future__ import annotations

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from crypto_heaven.db.session import SessionLocal, create_tables, drop_tables
from crypto_heaven.services.community_service import repair_memberships
from crypto_heaven.services.errors import ServiceError


def init_db(*, reset: bool = False, repair: bool = False) -> dict[str, int]:
    """Create all tables, optionally dropping them first and repairing memberships."""
    if reset:
        drop_tables()
    create_tables()
    if not repair:
        return {}
    with SessionLocal() as db:
        return repair_memberships(db)


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize the configured database")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop every table before creating the schema.",
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Ensure creators are admins and drop requests held by members.",
    )
    args = parser.parse_args()

    try:
        report = init_db(reset=args.reset, repair=args.repair)
    except (SQLAlchemyError, ServiceError) as exc:
        print(f"[init_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    print("[init_db] database initialized")
    for key, value in report.items():
        print(f"[init_db] {key}={value}")


if __name__ == "__main__":
    main()
