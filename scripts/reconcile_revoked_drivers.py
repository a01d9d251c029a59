#!/usr/bin/env python3
"""
Reconcile revoked drivers

Re-applies the revocation cascade to every revoked driver: assignments are
revoked, pending requests rejected and active sessions ended. Safe to run
repeatedly. The same pass runs on the Celery beat schedule.

Usage:
    python scripts/reconcile_revoked_drivers.py
    python scripts/reconcile_revoked_drivers.py --user-id 42
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddride.db.database import SessionLocal
from ddride.errors import PartialCascadeError
from ddride.services.trust_service import trust_service


def main():
    parser = argparse.ArgumentParser(description="Re-apply the revocation cascade to revoked drivers")
    parser.add_argument("--user-id", type=int, help="Only reconcile this driver")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.user_id is not None:
            if trust_service.current_trust_status(db, args.user_id) != "revoked":
                print(f"User {args.user_id} is not revoked; nothing to do")
                return 0
            try:
                report = trust_service.reconcile(db, args.user_id)
            except PartialCascadeError as e:
                print(f"❌ {e}")
                return 1
            print(f"✅ User {args.user_id}: {report}")
            return 0

        result = trust_service.reconcile_revoked(db)
        print(f"Revoked drivers: {result['revoked_drivers']}")
        for report in result["repaired"]:
            print(
                f"  ✓ user {report['user_id']}: "
                f"{report['revoke_assignments']} assignment(s), "
                f"{report['reject_requests']} request(s), "
                f"{report['end_sessions']} session(s)"
            )
        if result["failed_user_ids"]:
            print(f"❌ Failed: {result['failed_user_ids']}")
            return 1
        print("✅ Reconcile complete")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
