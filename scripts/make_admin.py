#!/usr/bin/env python3
"""
Promote a user to the admin role

Usage:
    python scripts/make_admin.py someone@example.com
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddride.db.database import SessionLocal
from ddride.db.models import User


def main():
    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument("email", help="User's email")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == args.email.strip()).first()
        if not user:
            print(f"❌ User not found: {args.email}")
            return 1
        if user.role == "admin":
            print(f"✓ {user.email} is already an admin")
            return 0
        user.role = "admin"
        db.commit()
        print(f"✅ {user.email} is now an admin")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
