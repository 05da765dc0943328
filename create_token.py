#!/usr/bin/env python3
"""
Issue a long-lived bearer token for an existing user.

Usage:
    python create_token.py --email maria@example.com --days 365
"""

import argparse
import sys

from service_marketplace_api.app.core.db import get_cursor
from service_marketplace_api.app.core.security import create_access_token


def main():
    ap = argparse.ArgumentParser(description="Issue an API token for a user.")
    ap.add_argument("--email", required=True, help="Email of the user the token is issued to")
    ap.add_argument("--days", type=int, default=365, help="Token lifetime in days (default: 365)")
    args = ap.parse_args()

    with get_cursor() as cursor:
        row = cursor.execute("SELECT id FROM users WHERE email = ?", (args.email,)).fetchone()
    if not row:
        print(f"[!] No user found with email: {args.email}", file=sys.stderr)
        sys.exit(2)

    token = create_access_token(
        {"sub": args.email, "user_id": row["id"]},
        expires_delta=args.days * 24 * 60 * 60,
    )
    print(token)


if __name__ == "__main__":
    main()
