"""
Pickup reminder sweep.

Delivered rentals whose return date is REMINDER_DAYS_BEFORE days away get a
pending_reminder email. Meant to run once a day (scripts/send_reminders.py)
and on demand from the admin API.
"""
import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional

import pytz
import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Rental
from .errors import RentalNotFound
from .notifications import notify
from .rental_dates import return_date
from .status_machine import RentalStatus


log = structlog.get_logger(__name__)

REMINDER_EMAIL_TYPE = "pending_reminder"


def business_today() -> date:
    tz = pytz.timezone(settings.tz_default)
    return datetime.now(tz).date()


def reminder_dedup_key(rental: Rental, due: date) -> str:
    return f"reminder:{rental.id}:{REMINDER_EMAIL_TYPE}:{due.isoformat()}"


def _delivered_rentals(db: Session) -> List[Rental]:
    return db.query(Rental).filter(Rental.status == RentalStatus.entregada.value).all()


def check_pickup_reminders(db: Session, today: Optional[date] = None) -> dict:
    today = today or business_today()
    target = today + timedelta(days=settings.reminder_days_before)
    summary = {"date": today.isoformat(), "checked": 0, "sent": 0, "failed": 0, "skipped": 0}

    for rental in _delivered_rentals(db):
        summary["checked"] += 1
        rental_id = str(rental.id)
        try:
            due = return_date(rental)
            if due != target:
                continue
            dedup_key = reminder_dedup_key(rental, due) if settings.dedupe_reminders else None
            email_log = notify(db, REMINDER_EMAIL_TYPE, rental, dedup_key=dedup_key)
            if email_log is None:
                summary["skipped"] += 1
            elif email_log.status == "sent":
                summary["sent"] += 1
            else:
                summary["failed"] += 1
        except Exception as e:
            db.rollback()
            summary["failed"] += 1
            log.error("reminder_failed", rental_id=rental_id, error=str(e))

    log.info("reminder_sweep_completed", **summary)
    return summary


def upcoming_reminders(db: Session, days: int = 7, today: Optional[date] = None) -> List[dict]:
    today = today or business_today()
    out = []
    for rental in _delivered_rentals(db):
        due = return_date(rental)
        if due is None:
            continue
        reminder_on = due - timedelta(days=settings.reminder_days_before)
        days_until_reminder = (reminder_on - today).days
        if not 0 <= days_until_reminder <= days:
            continue
        customer = rental.customer
        out.append({
            "rental_id": str(rental.id),
            "tracking_code": rental.tracking_code,
            "customer_name": customer.name if customer else None,
            "customer_email": customer.email if customer else None,
            "box_quantity": rental.box_quantity,
            "return_date": due.isoformat(),
            "reminder_date": reminder_on.isoformat(),
            "days_until_reminder": days_until_reminder,
            "days_until_return": (due - today).days,
        })
    out.sort(key=lambda r: r["days_until_reminder"])
    return out


def send_test_reminder(db: Session, rental_id: uuid.UUID):
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise RentalNotFound(rental_id)
    return notify(db, REMINDER_EMAIL_TYPE, rental)
