"""
Inventory reservation ledger.

A reservation holds an item for a rental over an inclusive date range. Two
unreleased reservations for the same item may not overlap.
"""
import uuid
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import InventoryItem, InventoryReservation, Rental
from .errors import ReservationConflict
from .rental_dates import return_date


log = structlog.get_logger(__name__)


class ItemNotReservable(ValueError):
    pass


def _overlapping(db: Session, item_id: uuid.UUID, start: date, end: date, exclude_rental_id: Optional[uuid.UUID] = None):
    q = db.query(InventoryReservation).filter(
        InventoryReservation.item_id == item_id,
        InventoryReservation.released_at.is_(None),
        InventoryReservation.start_date <= end,
        InventoryReservation.end_date >= start,
    )
    if exclude_rental_id is not None:
        q = q.filter(InventoryReservation.rental_id != exclude_rental_id)
    return q.first()


def reservation_window(rental: Rental) -> tuple:
    start = rental.delivery_date or date.today()
    end = return_date(rental) or start
    return start, end


def reserve_items(db: Session, rental: Rental, item_ids: Iterable[uuid.UUID]) -> List[InventoryReservation]:
    """Create ledger rows for the rental window (no commit)"""
    start, end = reservation_window(rental)
    held = {
        row.item_id
        for row in db.query(InventoryReservation).filter(
            InventoryReservation.rental_id == rental.id,
            InventoryReservation.released_at.is_(None),
        )
    }
    created = []
    for item_id in dict.fromkeys(item_ids):
        if item_id in held:
            continue
        item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
        if not item:
            raise ItemNotReservable(f"Item {item_id} not found")
        if item.status != "available":
            raise ItemNotReservable(f"Item {item.code} is {item.status}")
        clash = _overlapping(db, item.id, start, end, exclude_rental_id=rental.id)
        if clash is not None:
            raise ReservationConflict(item.code, clash.rental_id)
        row = InventoryReservation(item_id=item.id, rental_id=rental.id, start_date=start, end_date=end)
        db.add(row)
        created.append(row)
    db.flush()
    log.info("inventory_reserved", rental_id=str(rental.id), items=len(created), start=str(start), end=str(end))
    return created


def move_reservations(db: Session, rental: Rental) -> int:
    """Shift the rental's held items to its current window (no commit)"""
    start, end = reservation_window(rental)
    rows = (
        db.query(InventoryReservation)
        .filter(InventoryReservation.rental_id == rental.id, InventoryReservation.released_at.is_(None))
        .all()
    )
    for row in rows:
        if row.start_date == start and row.end_date == end:
            continue
        clash = _overlapping(db, row.item_id, start, end, exclude_rental_id=rental.id)
        if clash is not None:
            raise ReservationConflict(row.item.code if row.item else str(row.item_id), clash.rental_id)
        row.start_date = start
        row.end_date = end
    if rows:
        db.flush()
        log.info("inventory_moved", rental_id=str(rental.id), items=len(rows), start=str(start), end=str(end))
    return len(rows)


def release_reservations(db: Session, rental_id: uuid.UUID) -> int:
    now = datetime.now(timezone.utc)
    rows = (
        db.query(InventoryReservation)
        .filter(InventoryReservation.rental_id == rental_id, InventoryReservation.released_at.is_(None))
        .all()
    )
    for row in rows:
        row.released_at = now
    if rows:
        log.info("inventory_released", rental_id=str(rental_id), items=len(rows))
    return len(rows)


def available_items(db: Session, start: date, end: date, item_type: Optional[str] = None) -> List[InventoryItem]:
    q = db.query(InventoryItem).filter(InventoryItem.status == "available")
    if item_type:
        q = q.filter(InventoryItem.item_type == item_type)
    busy = (
        db.query(InventoryReservation.item_id)
        .filter(
            InventoryReservation.released_at.is_(None),
            InventoryReservation.start_date <= end,
            InventoryReservation.end_date >= start,
        )
    )
    return q.filter(InventoryItem.id.notin_(busy)).order_by(InventoryItem.code.asc()).all()


def inventory_summary(db: Session) -> dict:
    items = db.query(InventoryItem).all()
    summary = {"total": len(items), "by_status": {}, "by_type": {}}
    for item in items:
        summary["by_status"][item.status] = summary["by_status"].get(item.status, 0) + 1
        summary["by_type"][item.item_type] = summary["by_type"].get(item.item_type, 0) + 1
    return summary
