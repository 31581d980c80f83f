#!/usr/bin/env python3
"""
Seed the local database with an admin user, demo drivers and inventory.

Usage:
    python scripts/seed_data.py [--admin-email EMAIL] [--admin-password PASSWORD] [--boxes N]

Idempotent: existing rows (matched by email / code) are left alone.
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from boxrental.db import SessionLocal, Base, engine
from boxrental.models.models import Driver, InventoryItem, User
from boxrental.auth.security import get_password_hash


DEMO_DRIVERS = [
    ("Carlos Soto", "carlos.soto@arriendocajas.cl", "+56911112222"),
    ("María González", "maria.gonzalez@arriendocajas.cl", "+56933334444"),
]

EXTRA_ITEMS = [
    ("CART", "cart", 4),
    ("BASE", "base", 6),
    ("STRAP", "strap", 6),
]


def ensure_admin(db, email: str, password: str) -> User:
    email = email.lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"[SKIP] admin {email} exists")
        return user
    user = User(email=email, first_name="Admin", password_hash=get_password_hash(password), role="admin", is_active=True)
    db.add(user)
    db.flush()
    print(f"[ADD] admin {email}")
    return user


def ensure_driver(db, name: str, email: str, phone: str) -> None:
    if db.query(Driver).filter(Driver.email == email).first():
        return
    db.add(Driver(name=name, email=email, phone=phone, is_active=True))
    db.add(User(email=email, first_name=name.split()[0], password_hash=get_password_hash("driver123"), role="driver"))
    print(f"[ADD] driver {name}")


def ensure_items(db, prefix: str, item_type: str, count: int) -> None:
    added = 0
    for i in range(1, count + 1):
        code = f"{prefix}-{i:04d}"
        if db.query(InventoryItem.id).filter(InventoryItem.code == code).first():
            continue
        db.add(InventoryItem(code=code, item_type=item_type, status="available"))
        added += 1
    print(f"[ADD] {added} {item_type} item(s)")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--admin-email", default="admin@arriendocajas.cl")
    parser.add_argument("--admin-password", default="admin123")
    parser.add_argument("--boxes", type=int, default=100)
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_admin(db, args.admin_email, args.admin_password)
        for name, email, phone in DEMO_DRIVERS:
            ensure_driver(db, name, email, phone)
        ensure_items(db, "BOX", "box", args.boxes)
        for prefix, item_type, count in EXTRA_ITEMS:
            ensure_items(db, prefix, item_type, count)
        db.commit()
        print("Done.")
        return 0
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
