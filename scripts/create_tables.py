#!/usr/bin/env python3
"""
Create DDRide tables

Creates every table declared on the ORM models, including the partial unique
index that limits riders to one open ride request per event.

Usage:
    docker-compose exec api python scripts/create_tables.py
"""
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ddride.db.database import Base, engine
from ddride.db import models  # noqa: F401  registers tables on Base


def create_tables():
    print("=" * 60)
    print("DDRide - creating tables")
    print("=" * 60)

    Base.metadata.create_all(bind=engine)

    for table_name in sorted(Base.metadata.tables):
        print(f"  ✓ {table_name}")

    print("\nDone.")


if __name__ == "__main__":
    create_tables()
