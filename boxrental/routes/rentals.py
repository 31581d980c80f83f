import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import Customer, Rental
from ..schemas.inventory import ReservationResponse
from ..schemas.rentals import (
    AssignDriverRequest,
    RentalCreate,
    RentalResponse,
    RentalUpdate,
    StatusChangeRequest,
)
from ..services.customers import refresh_customer_counters
from ..services.driver_assignment import DriverUnavailable, assign_driver
from ..services.errors import ReservationConflict
from ..services.inventory import ItemNotReservable, reserve_items
from ..services.rental_status import change_rental_status
from ..services.rentals import CustomerNotFound, InvalidRentalDates, create_rental, delete_rental, update_rental
from ..services.status_machine import allowed_targets


router = APIRouter(prefix="/api/rentals", tags=["rentals"])


def _get_rental(db: Session, rental_id: uuid.UUID) -> Rental:
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise HTTPException(status_code=404, detail="Rental not found")
    return rental


@router.get("", response_model=List[RentalResponse])
def list_rentals(
    status: Optional[str] = None,
    customer_id: Optional[uuid.UUID] = None,
    driver_id: Optional[uuid.UUID] = None,
    q: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    query = db.query(Rental)
    if status:
        query = query.filter(Rental.status == status)
    if customer_id:
        query = query.filter(Rental.customer_id == customer_id)
    if driver_id:
        query = query.filter(Rental.driver_id == driver_id)
    if date_from:
        query = query.filter(Rental.delivery_date >= date_from)
    if date_to:
        query = query.filter(Rental.delivery_date <= date_to)
    if q:
        like = f"%{q.strip()}%"
        query = query.join(Customer, Customer.id == Rental.customer_id).filter(
            or_(Rental.tracking_code.ilike(like), Customer.name.ilike(like), Customer.rut.ilike(like))
        )
    return query.order_by(Rental.created_at.desc()).limit(min(limit, 1000)).all()


@router.post("", response_model=RentalResponse, status_code=201)
def create(payload: RentalCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    try:
        return create_rental(db, payload)
    except CustomerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (DriverUnavailable, ItemNotReservable) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{rental_id}", response_model=RentalResponse)
def get_rental(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    return _get_rental(db, rental_id)


@router.put("/{rental_id}", response_model=RentalResponse)
def update(rental_id: uuid.UUID, payload: RentalUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    try:
        return update_rental(db, rental_id, payload)
    except InvalidRentalDates as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{rental_id}", status_code=204)
def delete(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    delete_rental(db, rental_id)
    return Response(status_code=204)


@router.put("/{rental_id}/status", response_model=RentalResponse)
def change_status(rental_id: uuid.UUID, payload: StatusChangeRequest, db: Session = Depends(get_db), _=Depends(require_admin)):
    result = change_rental_status(db, rental_id, payload.status, expected_version=payload.expected_version, source="admin")
    return result.rental


@router.get("/{rental_id}/transitions")
def transitions(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    rental = _get_rental(db, rental_id)
    return {"status": rental.status, "allowed": allowed_targets(rental.status), "version": rental.version}


@router.post("/{rental_id}/assign-driver", response_model=RentalResponse)
def assign(rental_id: uuid.UUID, payload: AssignDriverRequest, db: Session = Depends(get_db), _=Depends(require_admin)):
    rental = _get_rental(db, rental_id)
    try:
        driver = assign_driver(db, rental, payload.driver_id)
    except DriverUnavailable as e:
        raise HTTPException(status_code=400, detail=str(e))
    if driver is None:
        raise HTTPException(status_code=400, detail="No active driver available")
    db.commit()
    db.refresh(rental)
    return rental


@router.post("/{rental_id}/reservations", response_model=List[ReservationResponse])
def reserve(rental_id: uuid.UUID, item_ids: List[uuid.UUID] = Body(..., embed=True), db: Session = Depends(get_db), _=Depends(require_admin)):
    rental = _get_rental(db, rental_id)
    try:
        rows = reserve_items(db, rental, item_ids)
    except ItemNotReservable as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except ReservationConflict:
        db.rollback()
        raise
    db.commit()
    for row in rows:
        db.refresh(row)
    return rows


@router.get("/{rental_id}/reservations", response_model=List[ReservationResponse])
def list_reservations(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    return _get_rental(db, rental_id).reservations


@router.post("/{rental_id}/refresh-counters", status_code=204)
def refresh_counters(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    refresh_customer_counters(db, _get_rental(db, rental_id).customer_id)
    return Response(status_code=204)
