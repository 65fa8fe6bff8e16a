#!/usr/bin/env python3
"""
Dealer Stock API -- provisioning CLI.

Dealers are created out-of-band; the API itself never registers accounts.
This script is that out-of-band path.

Usage:
  python main.py create-dealer northside
  python main.py create-dealer northside --password 's3cret-pass'
  python main.py list-dealers

Environment variables:
  DATABASE_URL  Target database (defaults to dealerapi.db in the repo root).
  SECRET_KEY    Required unless DEBUG=true (settings are validated on load).
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Dealer
from auth.store import DealerStore
from auth.tokens import hash_password, password_too_long


def create_dealer(store: DealerStore, name: str, password: str) -> Optional[int]:
    """Create a dealer and return its id, or None if the name is already taken."""
    try:
        return store.create_dealer(Dealer(name=name, hashed_password=hash_password(password)))
    except IntegrityError:
        return None


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Dealer Stock API provisioning")
    parser.add_argument("--db-url", help="Database URL (overrides DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-dealer", help="Provision a new dealer account")
    create.add_argument("name")
    create.add_argument("--password", help="Password (prompted when omitted)")

    sub.add_parser("list-dealers", help="List provisioned dealers")

    args = parser.parse_args(argv)
    store = DealerStore(args.db_url)
    try:
        if args.command == "create-dealer":
            name = args.name.strip()
            password = args.password or _prompt_password()
            if not name or not password:
                print("  [!] Name and password must not be empty.")
                return 1
            if password_too_long(password):
                print("  [!] Password must be 72 bytes or fewer (UTF-8).")
                return 1
            dealer_id = create_dealer(store, name, password)
            if dealer_id is None:
                print(f"  [!] A dealer named '{name}' already exists.")
                return 1
            print(f"  Created dealer '{name}' (id={dealer_id})")
            return 0

        dealers = store.list_dealers()
        if not dealers:
            print("  No dealers provisioned.")
        for d in dealers:
            print(f"  {d.id:>5}  {d.name}  (created {d.created_at})")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
