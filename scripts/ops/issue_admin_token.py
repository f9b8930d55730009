#!/usr/bin/env python3
"""
Issue a bearer token for the store admin API.

Usage:
    python scripts/ops/issue_admin_token.py ops@example.com --hours 8
"""

import argparse
import os
import sys
from datetime import timedelta

# Add project root to path
project_root = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)
sys.path.insert(0, project_root)

from libs.auth.dependencies import create_access_token
from libs.auth.models import ADMIN_ROLES


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("email", help="Operator email, also used as the subject")
    parser.add_argument("--role", default="admin", choices=sorted(ADMIN_ROLES))
    parser.add_argument("--hours", type=int, default=1)
    args = parser.parse_args()

    token = create_access_token(
        args.email,
        role=args.role,
        email=args.email,
        expires_in=timedelta(hours=args.hours),
    )
    print(token)


if __name__ == "__main__":
    main()
