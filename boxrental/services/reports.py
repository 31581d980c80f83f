"""
Dashboard metrics, report aggregates, CSV export and email statistics.
"""
import csv
import io
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Customer, Driver, EmailLog, Payment, Rental
from .inventory import inventory_summary
from .reminders import business_today
from .status_machine import STATUS_LABELS, TERMINAL_STATUSES, RentalStatus


REPORT_TYPES = ("financial", "customers", "inventory", "operations")

# Boxes physically at a customer's address
_IN_FIELD_STATUSES = (RentalStatus.en_ruta.value, RentalStatus.entregada.value, RentalStatus.retiro_programado.value)


def _window(start: Optional[date], end: Optional[date]):
    end = end or business_today()
    start = start or (end - timedelta(days=30))
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


def _status_counts(db: Session) -> dict:
    rows = db.query(Rental.status, func.count(Rental.id)).group_by(Rental.status).all()
    return {status: count for status, count in rows}


def dashboard_metrics(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    start_dt, end_dt = _window(start, end)
    active_boxes = (
        db.query(func.coalesce(func.sum(Rental.box_quantity), 0))
        .filter(Rental.status.in_(_IN_FIELD_STATUSES))
        .scalar()
    )
    pending_deliveries = (
        db.query(func.count(Rental.id))
        .filter(Rental.status.in_([RentalStatus.pendiente.value, RentalStatus.programada.value]))
        .scalar()
    )
    revenue = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.created_at >= start_dt, Payment.created_at <= end_dt)
        .scalar()
    )
    active_customers = (
        db.query(func.count(func.distinct(Rental.customer_id)))
        .filter(Rental.status.notin_(list(TERMINAL_STATUSES)))
        .scalar()
    )
    return {
        "active_boxes": int(active_boxes or 0),
        "pending_deliveries": int(pending_deliveries or 0),
        "revenue": float(revenue or 0),
        "active_customers": int(active_customers or 0),
        "rentals_by_status": _status_counts(db),
        "start_date": start_dt.date().isoformat(),
        "end_date": end_dt.date().isoformat(),
    }


def _financial(db: Session, start_dt, end_dt) -> dict:
    payments = db.query(Payment).filter(Payment.created_at >= start_dt, Payment.created_at <= end_dt).all()
    rentals = db.query(Rental).filter(Rental.created_at >= start_dt, Rental.created_at <= end_dt).all()
    billable = [r for r in rentals if r.status != RentalStatus.cancelada.value]
    billed = sum((Decimal(r.total_amount or 0) for r in billable), Decimal("0"))
    guarantees = sum((Decimal(r.guarantee_amount or 0) for r in billable), Decimal("0"))
    return {
        "revenue": float(sum((Decimal(p.amount) for p in payments), Decimal("0"))),
        "payments": len(payments),
        "billed": float(billed),
        "guarantees": float(guarantees),
        "outstanding": float(sum((Decimal(r.total_amount or 0) - Decimal(r.paid_amount or 0) for r in billable), Decimal("0"))),
    }


def _customers(db: Session, start_dt, end_dt) -> dict:
    new_customers = db.query(func.count(Customer.id)).filter(Customer.created_at >= start_dt, Customer.created_at <= end_dt).scalar()
    top = (
        db.query(Customer.name, func.count(Rental.id).label("rentals"), func.coalesce(func.sum(Rental.total_amount), 0))
        .join(Rental, Rental.customer_id == Customer.id)
        .filter(Rental.created_at >= start_dt, Rental.created_at <= end_dt)
        .group_by(Customer.id, Customer.name)
        .order_by(func.count(Rental.id).desc())
        .limit(10)
        .all()
    )
    return {
        "total_customers": db.query(func.count(Customer.id)).scalar() or 0,
        "new_customers": new_customers or 0,
        "with_debt": db.query(func.count(Customer.id)).filter(Customer.current_debt > 0).scalar() or 0,
        "top_customers": [{"name": name, "rentals": n, "amount": float(amount or 0)} for name, n, amount in top],
    }


def _operations(db: Session, start_dt, end_dt) -> dict:
    rentals = db.query(Rental).filter(Rental.created_at >= start_dt, Rental.created_at <= end_dt).all()
    by_status = {}
    for r in rentals:
        by_status[r.status] = by_status.get(r.status, 0) + 1
    per_driver = (
        db.query(Driver.name, func.count(Rental.id))
        .join(Rental, Rental.driver_id == Driver.id)
        .filter(Rental.created_at >= start_dt, Rental.created_at <= end_dt)
        .group_by(Driver.id, Driver.name)
        .all()
    )
    return {
        "rentals": len(rentals),
        "boxes": sum(r.box_quantity for r in rentals),
        "by_status": by_status,
        "by_driver": {name: n for name, n in per_driver},
        "average_days": (
            round(sum(r.rental_days or 0 for r in rentals) / len(rentals), 2) if rentals else 0
        ),
    }


def build_report(db: Session, report_type: str, start: Optional[date] = None, end: Optional[date] = None) -> dict:
    if report_type not in REPORT_TYPES:
        raise ValueError(f"Unknown report type: {report_type}")
    start_dt, end_dt = _window(start, end)
    if report_type == "financial":
        data = _financial(db, start_dt, end_dt)
    elif report_type == "customers":
        data = _customers(db, start_dt, end_dt)
    elif report_type == "inventory":
        data = inventory_summary(db)
        data["boxes_in_field"] = int(
            db.query(func.coalesce(func.sum(Rental.box_quantity), 0)).filter(Rental.status.in_(_IN_FIELD_STATUSES)).scalar() or 0
        )
    else:
        data = _operations(db, start_dt, end_dt)
    return {
        "type": report_type,
        "start_date": start_dt.date().isoformat(),
        "end_date": end_dt.date().isoformat(),
        "data": data,
    }


EXPORT_COLUMNS = [
    "tracking_code", "customer", "rut", "status", "box_quantity", "delivery_date",
    "pickup_date", "total_amount", "paid_amount", "driver", "created_at",
]


def export_rentals_csv(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> str:
    start_dt, end_dt = _window(start, end)
    rentals = (
        db.query(Rental)
        .filter(Rental.created_at >= start_dt, Rental.created_at <= end_dt)
        .order_by(Rental.created_at.asc())
        .all()
    )
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for r in rentals:
        writer.writerow([
            r.tracking_code,
            r.customer.name if r.customer else "",
            r.customer.rut if r.customer else "",
            STATUS_LABELS.get(r.status, r.status),
            r.box_quantity,
            r.delivery_date.isoformat() if r.delivery_date else "",
            r.pickup_date.isoformat() if r.pickup_date else "",
            f"{Decimal(r.total_amount or 0):.0f}",
            f"{Decimal(r.paid_amount or 0):.0f}",
            r.driver.name if r.driver else "",
            r.created_at.isoformat() if r.created_at else "",
        ])
    return buf.getvalue()


def email_stats(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    start_today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    start_week = start_today - timedelta(days=now.weekday())
    start_month = start_today.replace(day=1)

    def _count_since(since):
        return db.query(func.count(EmailLog.id)).filter(EmailLog.created_at >= since).scalar() or 0

    by_type = {t: n for t, n in db.query(EmailLog.email_type, func.count(EmailLog.id)).group_by(EmailLog.email_type).all()}
    by_status = {s: n for s, n in db.query(EmailLog.status, func.count(EmailLog.id)).group_by(EmailLog.status).all()}
    return {
        "total": db.query(func.count(EmailLog.id)).scalar() or 0,
        "today": _count_since(start_today),
        "this_week": _count_since(start_week),
        "this_month": _count_since(start_month),
        "by_type": by_type,
        "by_status": by_status,
    }
