import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Payment, Rental
from .customers import refresh_customer_counters
from .errors import RentalNotFound
from .status_machine import RentalStatus


log = structlog.get_logger(__name__)


class Overpayment(ValueError):
    pass


def record_payment(db: Session, rental_id: uuid.UUID, amount: Decimal, method: str, notes: Optional[str] = None) -> Payment:
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise RentalNotFound(rental_id)
    amount = Decimal(str(amount))
    new_paid = Decimal(rental.paid_amount or 0) + amount
    if new_paid > Decimal(rental.total_amount or 0):
        raise Overpayment(f"Payment exceeds outstanding balance ({Decimal(rental.total_amount or 0) - Decimal(rental.paid_amount or 0)})")
    payment = Payment(rental_id=rental.id, customer_id=rental.customer_id, amount=amount, method=method, notes=notes)
    rental.paid_amount = new_paid
    db.add(payment)
    db.commit()
    db.refresh(payment)
    log.info("payment_recorded", rental_id=str(rental.id), amount=str(amount), method=method)
    refresh_customer_counters(db, rental.customer_id)
    return payment


def delete_payment(db: Session, payment_id: uuid.UUID) -> bool:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        return False
    rental = db.query(Rental).filter(Rental.id == payment.rental_id).first()
    customer_id = payment.customer_id
    if rental:
        rental.paid_amount = max(Decimal(rental.paid_amount or 0) - Decimal(payment.amount), Decimal("0"))
    db.delete(payment)
    db.commit()
    refresh_customer_counters(db, customer_id)
    return True


def payment_stats(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    q = db.query(Payment)
    if start:
        q = q.filter(Payment.created_at >= start)
    if end:
        q = q.filter(Payment.created_at <= end)
    payments = q.all()
    by_method = {}
    for p in payments:
        bucket = by_method.setdefault(p.method, {"count": 0, "amount": 0.0})
        bucket["count"] += 1
        bucket["amount"] += float(p.amount)
    pending = (
        db.query(func.coalesce(func.sum(Rental.total_amount - Rental.paid_amount), 0))
        .filter(Rental.status != RentalStatus.cancelada.value)
        .scalar()
    )
    return {
        "total_revenue": float(sum((Decimal(p.amount) for p in payments), Decimal("0"))),
        "payment_count": len(payments),
        "pending_amount": float(pending or 0),
        "by_method": by_method,
    }
