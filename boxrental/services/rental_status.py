"""
Rental status transition handler.

A status write, the driver it may pull in, the released reservations and the
notification outbox entry are committed together. The email is delivered
after commit and its outcome never affects the transition.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..models.models import Driver, EmailLog, Rental
from .customers import refresh_customer_counters
from .driver_assignment import assign_driver
from .errors import RentalNotFound, StaleRentalVersion
from .inventory import release_reservations
from .notifications import deliver_outbox_entry, enqueue_notification
from .status_machine import RentalStatus, check_transition, email_type_for_status, is_allowed, is_terminal


log = structlog.get_logger(__name__)


@dataclass
class StatusChange:
    rental: Rental
    previous_status: Optional[str]
    email_log: Optional[EmailLog] = None
    assigned_driver: Optional[Driver] = None


def change_rental_status(
    db: Session,
    rental_id: uuid.UUID,
    new_status: str,
    expected_version: Optional[int] = None,
    source: str = "admin",
) -> StatusChange:
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise RentalNotFound(rental_id)
    if expected_version is not None and expected_version != rental.version:
        raise StaleRentalVersion(expected_version, rental.version)

    previous = rental.status
    if settings.strict_status_transitions:
        check_transition(previous, new_status)
    elif not is_allowed(previous, new_status):
        log.warning("unusual_status_transition", rental_id=str(rental.id), current=previous, target=new_status)

    driver = None
    outbox = None
    try:
        rental.status = new_status
        rental.updated_at = datetime.now(timezone.utc)
        if new_status == RentalStatus.programada.value and rental.driver_id is None:
            driver = assign_driver(db, rental)
        if is_terminal(new_status):
            release_reservations(db, rental.id)
        email_type = email_type_for_status(new_status)
        if email_type:
            outbox = enqueue_notification(db, email_type, rental)
        else:
            log.info("no_email_template", rental_id=str(rental.id), status=new_status)
        db.commit()
    except StaleDataError:
        db.rollback()
        db.refresh(rental)
        raise StaleRentalVersion(expected_version if expected_version is not None else -1, rental.version)
    except Exception:
        db.rollback()
        raise

    log.info(
        "rental_status_changed",
        rental_id=str(rental.id),
        previous=previous,
        status=new_status,
        version=rental.version,
        source=source,
    )

    email_log = deliver_outbox_entry(db, outbox) if outbox is not None else None
    refresh_customer_counters(db, rental.customer_id)
    db.refresh(rental)
    return StatusChange(rental=rental, previous_status=previous, email_log=email_log, assigned_driver=driver)
