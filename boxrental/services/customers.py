import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from ..models.models import Customer, Rental
from .status_machine import TERMINAL_STATUSES, RentalStatus


def refresh_customer_counters(db: Session, customer_id: uuid.UUID, commit: bool = True) -> None:
    """Recompute total_rentals, active_rentals and current_debt from the rentals table"""
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        return
    rentals = db.query(Rental).filter(Rental.customer_id == customer_id).all()
    customer.total_rentals = len(rentals)
    customer.active_rentals = sum(1 for r in rentals if r.status not in TERMINAL_STATUSES)
    debt = Decimal("0")
    for r in rentals:
        if r.status == RentalStatus.cancelada.value:
            continue
        debt += Decimal(r.total_amount or 0) - Decimal(r.paid_amount or 0)
    customer.current_debt = debt
    customer.updated_at = datetime.now(timezone.utc)
    if commit:
        db.commit()


def customer_balance(db: Session, customer_id: uuid.UUID) -> dict:
    rentals = db.query(Rental).filter(Rental.customer_id == customer_id).all()
    billable = [r for r in rentals if r.status != RentalStatus.cancelada.value]
    total = sum((Decimal(r.total_amount or 0) for r in billable), Decimal("0"))
    paid = sum((Decimal(r.paid_amount or 0) for r in billable), Decimal("0"))
    return {
        "customer_id": str(customer_id),
        "total_amount": float(total),
        "paid_amount": float(paid),
        "balance": float(total - paid),
        "rentals": len(rentals),
    }


def has_open_rentals(db: Session, customer_id: uuid.UUID) -> bool:
    return (
        db.query(Rental.id)
        .filter(Rental.customer_id == customer_id, Rental.status.notin_(list(TERMINAL_STATUSES)))
        .first()
        is not None
    )
