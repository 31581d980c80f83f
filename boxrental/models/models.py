import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="customer", nullable=False)  # admin|driver|customer
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rut: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    main_address: Mapped[Optional[str]] = mapped_column(Text)
    secondary_address: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    # Denormalized counters, refreshed by services.customers.refresh_customer_counters
    total_rentals: Mapped[int] = mapped_column(Integer, default=0)
    active_rentals: Mapped[int] = mapped_column(Integer, default=0)
    current_debt: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    rentals = relationship("Rental", back_populates="customer")


class Driver(Base):
    __tablename__ = "drivers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    rentals = relationship("Rental", back_populates="driver")


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="box")  # box|cart|strap|base
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")  # available|unavailable|maintenance|damaged
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Rental(Base):
    __tablename__ = "rentals"

    id: Mapped[uuid.UUID] = uuid_pk()
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("drivers.id", ondelete="SET NULL"), index=True)
    # Free string: unknown values are stored as-is unless strict transitions are enabled
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pendiente", index=True)
    box_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    rental_days: Mapped[Optional[int]] = mapped_column(Integer)
    price_per_day: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    guarantee_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date)
    pickup_date: Mapped[Optional[date]] = mapped_column(Date)  # return date
    delivery_address: Mapped[Optional[str]] = mapped_column(Text)
    pickup_address: Mapped[Optional[str]] = mapped_column(Text)
    tracking_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    tracking_token: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    additional_products: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # [{name, quantity, price}]
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    customer = relationship("Customer", back_populates="rentals")
    driver = relationship("Driver", back_populates="rentals")
    payments = relationship("Payment", back_populates="rental", cascade="all, delete-orphan")
    reservations = relationship("InventoryReservation", back_populates="rental", cascade="all, delete-orphan")

    # SQLAlchemy bumps version on every UPDATE and raises StaleDataError on a lost race
    __mapper_args__ = {"version_id_col": version}


class InventoryReservation(Base):
    """Ledger of items promised to a rental for a date range"""
    __tablename__ = "inventory_reservations"

    id: Mapped[uuid.UUID] = uuid_pk()
    item_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False)
    rental_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("rentals.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    item = relationship("InventoryItem")
    rental = relationship("Rental", back_populates="reservations")

    __table_args__ = (
        Index('idx_reservations_item_range', 'item_id', 'start_date', 'end_date'),
    )


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = uuid_pk()
    rental_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("rentals.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)  # efectivo|transferencia|tarjeta
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)

    rental = relationship("Rental", back_populates="payments")


class EmailLog(Base):
    """Append-only record of every notification attempt"""
    __tablename__ = "email_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    email_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    to_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    to_name: Mapped[Optional[str]] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    html_content: Mapped[str] = mapped_column(Text, nullable=False)
    # Plain ids, no FK: the audit trail must outlive rental deletion
    rental_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # sent|failed
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)

    __table_args__ = (
        Index('idx_email_logs_type_status', 'email_type', 'status'),
    )


class EmailOutbox(Base):
    """Notification intent written in the same commit as the state change that caused it"""
    __tablename__ = "email_outbox"

    id: Mapped[uuid.UUID] = uuid_pk()
    email_type: Mapped[str] = mapped_column(String(50), nullable=False)
    rental_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    dedup_key: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)  # pending|sent|failed
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    email_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
