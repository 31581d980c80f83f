import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import InventoryItem, InventoryReservation
from ..schemas.inventory import (
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    InventoryStatusUpdate,
    ItemType,
)
from ..services.inventory import available_items, inventory_summary


router = APIRouter(prefix="/api/inventory", tags=["inventory"])


def _get_item(db: Session, item_id: uuid.UUID) -> InventoryItem:
    row = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Item not found")
    return row


@router.get("", response_model=List[InventoryItemResponse])
def list_items(item_type: Optional[ItemType] = None, status: Optional[str] = None, db: Session = Depends(get_db), _=Depends(require_admin)):
    q = db.query(InventoryItem)
    if item_type:
        q = q.filter(InventoryItem.item_type == item_type.value)
    if status:
        q = q.filter(InventoryItem.status == status)
    return q.order_by(InventoryItem.code.asc()).all()


@router.get("/summary")
def summary(db: Session = Depends(get_db), _=Depends(require_admin)):
    return inventory_summary(db)


@router.get("/check", response_model=List[InventoryItemResponse])
def check_availability(
    start_date: date,
    end_date: date,
    item_type: Optional[ItemType] = None,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    return available_items(db, start_date, end_date, item_type.value if item_type else None)


@router.post("", response_model=InventoryItemResponse, status_code=201)
def create_item(payload: InventoryItemCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    row = InventoryItem(
        code=payload.code,
        item_type=payload.item_type.value,
        status=payload.status.value,
        notes=payload.notes,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Item code already exists")
    db.refresh(row)
    return row


@router.put("/{item_id}", response_model=InventoryItemResponse)
def update_item(item_id: uuid.UUID, payload: InventoryItemUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    row = _get_item(db, item_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(row, k, v.value if hasattr(v, "value") else v)
    row.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Item code already exists")
    db.refresh(row)
    return row


@router.patch("/{item_id}/status", response_model=InventoryItemResponse)
def update_item_status(item_id: uuid.UUID, payload: InventoryStatusUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    row = _get_item(db, item_id)
    row.status = payload.status.value
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return row


@router.delete("/{item_id}", status_code=204)
def delete_item(item_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    row = _get_item(db, item_id)
    open_reservation = (
        db.query(InventoryReservation.id)
        .filter(InventoryReservation.item_id == row.id, InventoryReservation.released_at.is_(None))
        .first()
    )
    if open_reservation:
        raise HTTPException(status_code=400, detail="Item has open reservations")
    db.delete(row)
    db.commit()
    return Response(status_code=204)
