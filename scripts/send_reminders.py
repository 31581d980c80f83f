#!/usr/bin/env python3
"""
Send pickup reminders for delivered rentals whose return date is two days away.
Meant for a daily cron job.

Usage:
    python scripts/send_reminders.py [--date YYYY-MM-DD] [--dry-run]
"""
import sys
import os
import argparse
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from boxrental.db import SessionLocal
from boxrental.logging import setup_logging
from boxrental.services.reminders import check_pickup_reminders, upcoming_reminders


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send pickup reminder emails")
    parser.add_argument("--date", help="Business date to evaluate (defaults to today in TZ_DEFAULT)")
    parser.add_argument("--dry-run", action="store_true", help="List reminders due without sending")
    args = parser.parse_args(argv)

    setup_logging()
    today = date.fromisoformat(args.date) if args.date else None
    db = SessionLocal()
    try:
        if args.dry_run:
            due = [r for r in upcoming_reminders(db, days=0, today=today) if r["days_until_reminder"] == 0]
            for r in due:
                print(f"[DUE] {r['tracking_code']} {r['customer_email']} return={r['return_date']}")
            print(f"{len(due)} reminder(s) due")
            return 0
        summary = check_pickup_reminders(db, today=today)
        print(f"checked={summary['checked']} sent={summary['sent']} failed={summary['failed']} skipped={summary['skipped']}")
        return 1 if summary["failed"] else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
