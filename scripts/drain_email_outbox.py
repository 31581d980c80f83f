#!/usr/bin/env python3
"""
Deliver notification outbox entries left pending (e.g. after a crash between
commit and send).

Usage:
    python scripts/drain_email_outbox.py [--limit N]
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from boxrental.db import SessionLocal
from boxrental.logging import setup_logging
from boxrental.services.notifications import drain_outbox


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Drain the email outbox")
    parser.add_argument("--limit", type=int, default=None)
    args = parser.parse_args(argv)

    setup_logging()
    db = SessionLocal()
    try:
        summary = drain_outbox(db, limit=args.limit)
        print(f"processed={summary['processed']} sent={summary['sent']} failed={summary['failed']}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
