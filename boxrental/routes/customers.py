import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import Customer, Payment, Rental
from ..schemas.customers import CustomerCreate, CustomerResponse, CustomerUpdate
from ..schemas.payments import PaymentResponse
from ..schemas.rentals import RentalResponse
from ..services.customers import customer_balance, has_open_rentals


router = APIRouter(prefix="/api/customers", tags=["customers"])


def _get_customer(db: Session, customer_id: uuid.UUID) -> Customer:
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Customer not found")
    return c


@router.get("", response_model=List[CustomerResponse])
def list_customers(db: Session = Depends(get_db), _=Depends(require_admin)):
    return db.query(Customer).order_by(Customer.name.asc()).all()


@router.get("/search", response_model=List[CustomerResponse])
def search_customers(q: str, limit: int = 20, db: Session = Depends(get_db), _=Depends(require_admin)):
    like = f"%{q.strip()}%"
    return (
        db.query(Customer)
        .filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.rut.ilike(like), Customer.phone.ilike(like)))
        .order_by(Customer.name.asc())
        .limit(min(limit, 100))
        .all()
    )


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    c = Customer(**payload.model_dump())
    c.email = c.email.lower()
    db.add(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="A customer with this RUT, email or phone already exists")
    db.refresh(c)
    return c


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    return _get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: uuid.UUID, payload: CustomerUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    c = _get_customer(db, customer_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(c, k, v)
    c.updated_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="A customer with this RUT, email or phone already exists")
    db.refresh(c)
    return c


@router.delete("/{customer_id}", status_code=204)
def delete_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    c = _get_customer(db, customer_id)
    if has_open_rentals(db, c.id):
        raise HTTPException(status_code=400, detail="Customer has active rentals")
    if db.query(Rental.id).filter(Rental.customer_id == c.id).first():
        raise HTTPException(status_code=400, detail="Customer has rental history")
    db.delete(c)
    db.commit()
    return Response(status_code=204)


@router.get("/{customer_id}/balance")
def get_balance(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    _get_customer(db, customer_id)
    return customer_balance(db, customer_id)


@router.get("/{customer_id}/rentals", response_model=List[RentalResponse])
def customer_rentals(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    _get_customer(db, customer_id)
    return db.query(Rental).filter(Rental.customer_id == customer_id).order_by(Rental.created_at.desc()).all()


@router.get("/{customer_id}/payments", response_model=List[PaymentResponse])
def customer_payments(customer_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    _get_customer(db, customer_id)
    return db.query(Payment).filter(Payment.customer_id == customer_id).order_by(Payment.created_at.desc()).all()
