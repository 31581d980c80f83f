import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..models.models import Customer, Rental
from .customers import refresh_customer_counters
from .driver_assignment import assign_driver
from .errors import RentalNotFound, StaleRentalVersion
from .inventory import move_reservations, release_reservations, reserve_items
from .notifications import deliver_outbox_entry, enqueue_notification
from .status_machine import INITIAL_STATUS, email_type_for_status
from .tracking import generate_tracking_token, generate_unique_tracking_code


log = structlog.get_logger(__name__)


class CustomerNotFound(ValueError):
    pass


class InvalidRentalDates(ValueError):
    pass


def default_guarantee(box_quantity: int) -> Decimal:
    return Decimal(box_quantity) * Decimal(settings.guarantee_per_box)


def products_total(products: Optional[List[dict]]) -> Decimal:
    total = Decimal("0")
    for p in products or []:
        total += Decimal(str(p.get("quantity") or 0)) * Decimal(str(p.get("price") or 0))
    return total


def compute_total(box_quantity: int, rental_days: int, price_per_day, products: Optional[List[dict]], guarantee) -> Decimal:
    base = Decimal(box_quantity) * Decimal(rental_days) * Decimal(str(price_per_day or 0))
    return base + products_total(products) + Decimal(str(guarantee or 0))


def default_pickup_date(delivery: date, rental_days: Optional[int]) -> date:
    return delivery + timedelta(days=rental_days or settings.default_rental_days)


def _products_json(products) -> list:
    return [
        {"name": p.name, "quantity": p.quantity, "price": float(p.price)}
        for p in products or []
    ]


def create_rental(db: Session, payload) -> Rental:
    """Create a rental in pendiente, reserve items and send the quotation email"""
    customer = db.query(Customer).filter(Customer.id == payload.customer_id).first()
    if not customer:
        raise CustomerNotFound("Customer not found")

    products = _products_json(payload.additional_products)
    guarantee = payload.guarantee_amount if payload.guarantee_amount is not None else default_guarantee(payload.box_quantity)
    total = payload.total_amount
    if total is None:
        total = compute_total(payload.box_quantity, payload.rental_days, payload.price_per_day, products, guarantee)

    rental = Rental(
        id=uuid.uuid4(),
        customer_id=customer.id,
        status=INITIAL_STATUS,
        box_quantity=payload.box_quantity,
        rental_days=payload.rental_days,
        price_per_day=payload.price_per_day,
        guarantee_amount=guarantee,
        total_amount=total,
        paid_amount=Decimal("0"),
        delivery_date=payload.delivery_date,
        pickup_date=payload.pickup_date or default_pickup_date(payload.delivery_date, payload.rental_days),
        delivery_address=payload.delivery_address or customer.main_address,
        pickup_address=payload.pickup_address or payload.delivery_address or customer.main_address,
        tracking_code=generate_unique_tracking_code(db, customer.rut),
        tracking_token=generate_tracking_token(),
        notes=payload.notes,
        additional_products=products,
    )
    rental.customer = customer
    try:
        db.add(rental)
        db.flush()
        if payload.driver_id:
            assign_driver(db, rental, payload.driver_id)
        if payload.item_ids:
            reserve_items(db, rental, payload.item_ids)
        outbox = enqueue_notification(db, email_type_for_status(INITIAL_STATUS), rental)
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("rental_created", rental_id=str(rental.id), customer_id=str(customer.id), tracking_code=rental.tracking_code)

    if outbox is not None:
        deliver_outbox_entry(db, outbox)
    refresh_customer_counters(db, customer.id)
    db.refresh(rental)
    return rental


def update_rental(db: Session, rental_id: uuid.UUID, payload) -> Rental:
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise RentalNotFound(rental_id)
    data = payload.model_dump(exclude_unset=True)
    expected_version = data.pop("expected_version", None)
    if expected_version is not None and expected_version != rental.version:
        raise StaleRentalVersion(expected_version, rental.version)

    delivery = data.get("delivery_date", rental.delivery_date)
    pickup = data.get("pickup_date", rental.pickup_date)
    if delivery and pickup and pickup < delivery:
        raise InvalidRentalDates("pickup_date must not be before delivery_date")

    if "additional_products" in data:
        data["additional_products"] = _products_json(payload.additional_products)
    for key, value in data.items():
        setattr(rental, key, value)

    # Re-price only when pricing inputs changed and no explicit total was given
    pricing_keys = {"box_quantity", "rental_days", "price_per_day", "guarantee_amount", "additional_products"}
    if pricing_keys & set(data) and "total_amount" not in data:
        rental.total_amount = compute_total(
            rental.box_quantity,
            rental.rental_days or settings.default_rental_days,
            rental.price_per_day,
            rental.additional_products,
            rental.guarantee_amount,
        )
    rental.updated_at = datetime.now(timezone.utc)
    try:
        if {"delivery_date", "pickup_date", "rental_days"} & set(data):
            move_reservations(db, rental)
        db.commit()
    except StaleDataError:
        db.rollback()
        db.refresh(rental)
        raise StaleRentalVersion(expected_version if expected_version is not None else -1, rental.version)
    except Exception:
        db.rollback()
        raise
    refresh_customer_counters(db, rental.customer_id)
    db.refresh(rental)
    return rental


def delete_rental(db: Session, rental_id: uuid.UUID) -> None:
    rental = db.query(Rental).filter(Rental.id == rental_id).first()
    if not rental:
        raise RentalNotFound(rental_id)
    customer_id = rental.customer_id
    release_reservations(db, rental.id)
    db.delete(rental)
    db.commit()
    log.info("rental_deleted", rental_id=str(rental_id))
    refresh_customer_counters(db, customer_id)
