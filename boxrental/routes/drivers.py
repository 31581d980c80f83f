import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import Driver, Rental
from ..schemas.drivers import DriverCreate, DriverResponse, DriverUpdate
from ..services.driver_assignment import current_assignment_counts


router = APIRouter(prefix="/api/drivers", tags=["drivers"])


def _with_load(driver: Driver, counts: dict) -> DriverResponse:
    out = DriverResponse.model_validate(driver)
    out.current_assignments = counts.get(driver.id, 0)
    return out


def _get_driver(db: Session, driver_id: uuid.UUID) -> Driver:
    d = db.query(Driver).filter(Driver.id == driver_id).first()
    if not d:
        raise HTTPException(status_code=404, detail="Driver not found")
    return d


@router.get("", response_model=List[DriverResponse])
def list_drivers(active_only: bool = False, db: Session = Depends(get_db), _=Depends(require_admin)):
    q = db.query(Driver)
    if active_only:
        q = q.filter(Driver.is_active.is_(True))
    counts = current_assignment_counts(db)
    return [_with_load(d, counts) for d in q.order_by(Driver.name.asc()).all()]


@router.post("", response_model=DriverResponse, status_code=201)
def create_driver(payload: DriverCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    d = Driver(**payload.model_dump())
    db.add(d)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="A driver with this email or phone already exists")
    db.refresh(d)
    return _with_load(d, {})


@router.get("/{driver_id}", response_model=DriverResponse)
def get_driver(driver_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    return _with_load(_get_driver(db, driver_id), current_assignment_counts(db))


@router.put("/{driver_id}", response_model=DriverResponse)
def update_driver(driver_id: uuid.UUID, payload: DriverUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    d = _get_driver(db, driver_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(d, k, v)
    d.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="A driver with this email or phone already exists")
    db.refresh(d)
    return _with_load(d, current_assignment_counts(db))


@router.delete("/{driver_id}", status_code=204)
def delete_driver(driver_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    d = _get_driver(db, driver_id)
    db.query(Rental).filter(Rental.driver_id == d.id).update({Rental.driver_id: None}, synchronize_session=False)
    db.delete(d)
    db.commit()
    return Response(status_code=204)
