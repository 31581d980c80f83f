"""
Notification dispatcher.

Every attempt is recorded as exactly one EmailLog row. Transport and template
errors are captured on that row and never propagate to the caller.

Notifications triggered by a state change go through the EmailOutbox: the
entry is added in the same transaction as the change and delivered right
after commit. drain_outbox() picks up entries left pending by a crash.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import EmailLog, EmailOutbox, Rental
from . import mailer
from .email_templates import AdditionalProduct, RentalEmailData, has_template, render_email
from .errors import MailNotConfigured
from .rental_dates import return_date
from .tracking import tracking_url


log = structlog.get_logger(__name__)


def _additional_products(rental: Rental) -> list:
    products = []
    for p in rental.additional_products or []:
        if not isinstance(p, dict):
            continue
        products.append(AdditionalProduct(
            name=str(p.get("name") or ""),
            quantity=int(p.get("quantity") or 0),
            price=p.get("price") or 0,
        ))
    return products


def build_email_data(rental: Rental) -> RentalEmailData:
    customer = rental.customer
    driver = rental.driver
    return RentalEmailData(
        customer_name=customer.name,
        customer_email=customer.email,
        tracking_code=rental.tracking_code,
        tracking_token=rental.tracking_token,
        tracking_url=tracking_url(rental.tracking_code, rental.tracking_token),
        box_quantity=rental.box_quantity,
        delivery_date=rental.delivery_date,
        pickup_date=return_date(rental),
        delivery_address=rental.delivery_address or customer.main_address,
        pickup_address=rental.pickup_address,
        total_amount=rental.total_amount or 0,
        guarantee_amount=rental.guarantee_amount or 0,
        paid_amount=rental.paid_amount or 0,
        driver_name=driver.name if driver else None,
        driver_phone=driver.phone if driver else None,
        additional_products=_additional_products(rental),
    )


def dispatch_notification(db: Session, email_type: str, rental: Rental, commit: bool = True) -> Optional[EmailLog]:
    """Render, send and log one email. Returns None for unknown email types."""
    if not has_template(email_type):
        log.info("no_email_template", email_type=email_type, rental_id=str(rental.id))
        return None

    customer = rental.customer
    entry = EmailLog(
        email_type=email_type,
        to_email=customer.email,
        to_name=customer.name,
        subject=f"[{email_type}] {rental.tracking_code}",
        html_content="",
        rental_id=rental.id,
        customer_id=customer.id,
        status="failed",
    )
    try:
        rendered = render_email(email_type, build_email_data(rental))
        entry.subject = rendered.subject
        entry.html_content = rendered.html
        mailer.send_email(customer.email, rendered.subject, rendered.html, text=rendered.text, to_name=customer.name)
        entry.status = "sent"
        entry.sent_at = datetime.now(timezone.utc)
        log.info("email_sent", email_type=email_type, rental_id=str(rental.id), to=customer.email)
    except MailNotConfigured as e:
        entry.error_message = str(e)
        log.warning("email_not_configured", email_type=email_type, rental_id=str(rental.id))
    except Exception as e:
        entry.error_message = str(e) or e.__class__.__name__
        log.warning("email_send_failed", email_type=email_type, rental_id=str(rental.id), error=entry.error_message)

    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    else:
        db.flush()
    return entry


def enqueue_notification(db: Session, email_type: str, rental: Rental, dedup_key: Optional[str] = None) -> Optional[EmailOutbox]:
    """Add a pending outbox entry to the current transaction (no commit).

    Returns None when the type has no template or the dedup key was already used.
    """
    if not has_template(email_type):
        log.info("no_email_template", email_type=email_type, rental_id=str(rental.id))
        return None
    if dedup_key:
        existing = db.query(EmailOutbox.id).filter(EmailOutbox.dedup_key == dedup_key).first()
        if existing:
            log.info("notification_deduplicated", email_type=email_type, rental_id=str(rental.id), dedup_key=dedup_key)
            return None
    entry = EmailOutbox(
        email_type=email_type,
        rental_id=rental.id,
        customer_id=rental.customer_id,
        dedup_key=dedup_key,
        status="pending",
        attempts=0,
    )
    db.add(entry)
    return entry


def deliver_outbox_entry(db: Session, entry: EmailOutbox) -> Optional[EmailLog]:
    entry.attempts = (entry.attempts or 0) + 1
    entry.processed_at = datetime.now(timezone.utc)
    rental = db.query(Rental).filter(Rental.id == entry.rental_id).first() if entry.rental_id else None
    if rental is None:
        entry.status = "failed"
        db.commit()
        log.warning("outbox_rental_missing", outbox_id=str(entry.id), rental_id=str(entry.rental_id))
        return None
    email_log = dispatch_notification(db, entry.email_type, rental, commit=False)
    if email_log is None:
        entry.status = "failed"
    else:
        entry.status = email_log.status
        entry.email_log_id = email_log.id
    db.commit()
    if email_log is not None:
        db.refresh(email_log)
    return email_log


def drain_outbox(db: Session, limit: Optional[int] = None) -> dict:
    """Deliver every pending outbox entry, oldest first. Failed entries are not retried."""
    q = db.query(EmailOutbox).filter(EmailOutbox.status == "pending").order_by(EmailOutbox.created_at.asc())
    if limit:
        q = q.limit(limit)
    summary = {"processed": 0, "sent": 0, "failed": 0}
    for entry in q.all():
        email_log = deliver_outbox_entry(db, entry)
        summary["processed"] += 1
        if email_log is not None and email_log.status == "sent":
            summary["sent"] += 1
        else:
            summary["failed"] += 1
    log.info("email_outbox_drained", **summary)
    return summary


def notify(db: Session, email_type: str, rental: Rental, dedup_key: Optional[str] = None) -> Optional[EmailLog]:
    """Enqueue, commit and deliver in one call"""
    entry = enqueue_notification(db, email_type, rental, dedup_key=dedup_key)
    if entry is None:
        return None
    db.commit()
    return deliver_outbox_entry(db, entry)


def get_email_log(db: Session, log_id: uuid.UUID) -> Optional[EmailLog]:
    return db.query(EmailLog).filter(EmailLog.id == log_id).first()
