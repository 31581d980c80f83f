import uuid
from datetime import date, datetime, time, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..models.models import Payment
from ..schemas.payments import PaymentCreate, PaymentMethod, PaymentResponse
from ..services.payments import Overpayment, delete_payment, payment_stats, record_payment


router = APIRouter(prefix="/api/payments", tags=["payments"])


def _day_start(d: Optional[date]):
    return datetime.combine(d, time.min, tzinfo=timezone.utc) if d else None


def _day_end(d: Optional[date]):
    return datetime.combine(d, time.max, tzinfo=timezone.utc) if d else None


@router.get("", response_model=List[PaymentResponse])
def list_payments(
    method: Optional[PaymentMethod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    rental_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    q = db.query(Payment)
    if method:
        q = q.filter(Payment.method == method.value)
    if rental_id:
        q = q.filter(Payment.rental_id == rental_id)
    if start_date:
        q = q.filter(Payment.created_at >= _day_start(start_date))
    if end_date:
        q = q.filter(Payment.created_at <= _day_end(end_date))
    return q.order_by(Payment.created_at.desc()).all()


@router.get("/stats")
def stats(start_date: Optional[date] = None, end_date: Optional[date] = None, db: Session = Depends(get_db), _=Depends(require_admin)):
    return payment_stats(db, _day_start(start_date), _day_end(end_date))


@router.post("", response_model=PaymentResponse, status_code=201)
def create_payment(payload: PaymentCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    try:
        return record_payment(db, payload.rental_id, payload.amount, payload.method.value, payload.notes)
    except Overpayment as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{payment_id}", status_code=204)
def remove_payment(payment_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    if not delete_payment(db, payment_id):
        raise HTTPException(status_code=404, detail="Payment not found")
    return Response(status_code=204)
