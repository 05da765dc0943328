#!/usr/bin/env python3
"""
Reset a user's password in the marketplace SQLite database.

This script does not read or reveal any existing password.  It stores a
new salted hash (same format the API uses at registration) for the user
with the given email.

Usage:
    python reset_password.py --email maria@example.com --password "NewStrongPass!234"

The database is taken from ``DATABASE_URL`` unless ``--db`` is given.
If ``--password`` is omitted, you will be prompted to enter it securely.
"""

import argparse
import getpass
import os
import sqlite3
import sys

from service_marketplace_api.app.core.db import get_database_path
from service_marketplace_api.app.core.security import hash_password


def main():
    ap = argparse.ArgumentParser(description="Reset a marketplace user's password (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file (default: DATABASE_URL)")
    ap.add_argument("--email", required=True, help="User email to update")
    ap.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    args = ap.parse_args()

    db_path = args.db or get_database_path()
    if not os.path.exists(db_path):
        print(f"[!] DB not found: {db_path}", file=sys.stderr)
        sys.exit(1)

    new_password = args.password or getpass.getpass("Enter NEW password: ")
    if not new_password:
        print("[!] Empty password is not allowed.", file=sys.stderr)
        sys.exit(1)

    conn = sqlite3.connect(db_path)
    try:
        cur = conn.execute(
            "UPDATE users SET password = ?, updated_at = CURRENT_TIMESTAMP WHERE email = ?",
            (hash_password(new_password), args.email),
        )
        if cur.rowcount != 1:
            print(f"[!] No user found with email: {args.email}", file=sys.stderr)
            sys.exit(2)
        conn.commit()
        print(f"[+] Password updated for user: {args.email}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
