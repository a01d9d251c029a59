#!/usr/bin/env python3
"""
Reinstate a revoked driver from the command line

Usage:
    python scripts/reinstate_driver.py driver@example.com --event-id 12 --admin-email admin@example.com
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddride.db.database import SessionLocal
from ddride.db.models import User
from ddride.errors import DDRideError
from ddride.services.adjudication_service import adjudication_service


def main():
    parser = argparse.ArgumentParser(description="Reinstate a revoked designated driver")
    parser.add_argument("email", help="Driver's email")
    parser.add_argument("--event-id", type=int, required=True, help="Event to restore the assignment for")
    parser.add_argument("--admin-email", required=True, help="Admin recorded as resolving the alerts")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        driver = db.query(User).filter(User.email == args.email).first()
        if not driver:
            print(f"❌ User not found: {args.email}")
            return 1
        admin = db.query(User).filter(User.email == args.admin_email, User.role == "admin").first()
        if not admin:
            print(f"❌ Admin not found: {args.admin_email}")
            return 1

        print(f"Found user: {driver.name} ({driver.email})")
        try:
            result = adjudication_service.reinstate(
                db, admin.id, driver.id, args.event_id, group_id=admin.group_id
            )
        except DDRideError as e:
            print(f"❌ {e}")
            return 1

        print(f"✅ Trust status: {result['trust_status']}")
        print(f"✅ Assignment for event {args.event_id}: {result['assignment'].status}")
        print(f"✅ Resolved {result['alerts_resolved']} alert(s)")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
