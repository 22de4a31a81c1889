#!/usr/bin/env python3
"""Apply pending data migrations (backfills, template seeds) outside app startup"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from estateflow.core.config import get_settings
from estateflow.core.logging import configure_logging
from estateflow.db.session import SessionLocal
from estateflow.services.data_migration import run_data_migrations


def main():
    configure_logging(get_settings().LOG_LEVEL)
    db = SessionLocal()
    try:
        applied = run_data_migrations(db)
        if applied:
            print(f"Applied: {', '.join(applied)}")
        else:
            print("Nothing to apply")
    finally:
        db.close()


if __name__ == "__main__":
    main()
