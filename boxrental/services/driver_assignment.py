"""
Driver selection for rentals that are scheduled without a driver.

The heuristic picks the active driver carrying the fewest non-terminal
rentals; ties go to the driver registered first.
"""
import uuid
from typing import Optional

import structlog
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from ..models.models import Driver, Rental
from .status_machine import TERMINAL_STATUSES


log = structlog.get_logger(__name__)


class DriverUnavailable(ValueError):
    pass


def current_assignment_counts(db: Session) -> dict:
    rows = (
        db.query(Rental.driver_id, func.count(Rental.id))
        .filter(Rental.driver_id.isnot(None), Rental.status.notin_(list(TERMINAL_STATUSES)))
        .group_by(Rental.driver_id)
        .all()
    )
    return {driver_id: count for driver_id, count in rows}


def pick_available_driver(db: Session) -> Optional[Driver]:
    load = func.count(Rental.id)
    row = (
        db.query(Driver, load)
        .outerjoin(
            Rental,
            and_(Rental.driver_id == Driver.id, Rental.status.notin_(list(TERMINAL_STATUSES))),
        )
        .filter(Driver.is_active.is_(True))
        .group_by(Driver.id)
        .order_by(load.asc(), Driver.created_at.asc())
        .first()
    )
    return row[0] if row else None


def assign_driver(db: Session, rental: Rental, driver_id: Optional[uuid.UUID] = None) -> Optional[Driver]:
    """Attach a driver to the rental without committing.

    An explicit driver must exist and be active. Without one the heuristic is
    used and None is returned when no active driver exists.
    """
    if driver_id is not None:
        driver = db.query(Driver).filter(Driver.id == driver_id).first()
        if not driver or not driver.is_active:
            raise DriverUnavailable("Driver not found or inactive")
    else:
        driver = pick_available_driver(db)
        if driver is None:
            log.warning("no_driver_available", rental_id=str(rental.id))
            return None
        log.info("driver_auto_assigned", rental_id=str(rental.id), driver_id=str(driver.id))
    rental.driver_id = driver.id
    rental.driver = driver
    return driver
