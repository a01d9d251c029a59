#!/usr/bin/env python3
"""
Create a group and optionally add existing users to it

Usage:
    python scripts/create_group.py "Alpha Beta Gamma" ABG2024
    python scripts/create_group.py "Alpha Beta Gamma" ABG2024 --member admin@example.com
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddride.db.database import SessionLocal
from ddride.db.models import User
from ddride.errors import DDRideError
from ddride.services.group_service import group_service


def main():
    parser = argparse.ArgumentParser(description="Create a group")
    parser.add_argument("name", help="Group name")
    parser.add_argument("access_code", help="Code members use to join")
    parser.add_argument("--member", action="append", default=[], help="Email of a user to add (repeatable)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        try:
            group = group_service.create_group(db, args.name, args.access_code)
        except DDRideError as e:
            print(f"❌ {e}")
            return 1
        print(f"✅ Group {group.id}: {group.name} (code {group.access_code})")

        failed = 0
        for email in args.member:
            user = db.query(User).filter(User.email == email.strip()).first()
            if not user:
                print(f"❌ User not found: {email}")
                failed += 1
                continue
            try:
                group_service.join_group(db, user.id, group.access_code)
            except DDRideError as e:
                print(f"❌ {email}: {e}")
                failed += 1
                continue
            print(f"  ✓ {user.email} joined")
        return 1 if failed else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
