import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT", "100000/minute")
os.environ.setdefault("PUBLIC_BASE_URL", "https://arriendocajas.test")

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boxrental.auth.security import create_access_token, get_password_hash
from boxrental.config import settings
from boxrental.db import Base, get_db
from boxrental.main import app
from boxrental.models.models import Customer, Driver, InventoryItem, Rental, User
from boxrental.services import mailer
from boxrental.services.tracking import generate_tracking_code, generate_tracking_token


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class FakeTransport:
    """Stands in for the SMTP connection; records messages or raises fail_with"""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def __call__(self, msg):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(msg)


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def mail(monkeypatch):
    fake = FakeTransport()
    monkeypatch.setattr(mailer, "_deliver", fake)
    monkeypatch.setattr(settings, "smtp_host", "smtp.test")
    monkeypatch.setattr(settings, "mail_from", "no-reply@arriendocajas.cl")
    monkeypatch.setattr(settings, "mail_cc", None)
    monkeypatch.setattr(settings, "enable_email", True)
    monkeypatch.setattr(settings, "strict_status_transitions", False)
    monkeypatch.setattr(settings, "dedupe_reminders", False)
    return fake


@pytest.fixture()
def client(db):
    def _override():
        yield db

    app.dependency_overrides[get_db] = _override
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_user(db, email: str, role: str) -> User:
    user = User(email=email, first_name=role.title(), password_hash=get_password_hash("secret123"), role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin_user(db):
    return _make_user(db, "admin@arriendocajas.cl", "admin")


@pytest.fixture()
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(str(admin_user.id), admin_user.role)}"}


@pytest.fixture()
def driver_headers(db):
    user = _make_user(db, "driver@arriendocajas.cl", "driver")
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role)}"}


@pytest.fixture()
def make_customer(db):
    counter = {"n": 0}

    def _make(**kw) -> Customer:
        counter["n"] += 1
        n = counter["n"]
        c = Customer(
            name=kw.pop("name", f"Cliente {n}"),
            rut=kw.pop("rut", f"16.220.93{n}-6"),
            email=kw.pop("email", f"cliente{n}@example.com"),
            phone=kw.pop("phone", f"+5690000000{n}"),
            main_address=kw.pop("main_address", "Av. Providencia 1234, Santiago"),
            **kw,
        )
        db.add(c)
        db.commit()
        db.refresh(c)
        return c

    return _make


@pytest.fixture()
def make_driver(db):
    counter = {"n": 0}

    def _make(**kw) -> Driver:
        counter["n"] += 1
        n = counter["n"]
        d = Driver(
            name=kw.pop("name", f"Conductor {n}"),
            email=kw.pop("email", f"conductor{n}@arriendocajas.cl"),
            phone=kw.pop("phone", f"+5691111111{n}"),
            is_active=kw.pop("is_active", True),
            **kw,
        )
        db.add(d)
        db.commit()
        db.refresh(d)
        return d

    return _make


@pytest.fixture()
def make_rental(db, make_customer):
    """Insert a rental row directly, without the creation email"""

    def _make(customer=None, **kw) -> Rental:
        customer = customer or make_customer()
        delivery = kw.pop("delivery_date", date(2025, 1, 10))
        r = Rental(
            id=uuid.uuid4(),
            customer_id=customer.id,
            status=kw.pop("status", "pendiente"),
            box_quantity=kw.pop("box_quantity", 10),
            rental_days=kw.pop("rental_days", 7),
            price_per_day=kw.pop("price_per_day", Decimal("1000")),
            guarantee_amount=kw.pop("guarantee_amount", Decimal("20000")),
            total_amount=kw.pop("total_amount", Decimal("90000")),
            paid_amount=kw.pop("paid_amount", Decimal("0")),
            delivery_date=delivery,
            pickup_date=kw.pop("pickup_date", delivery + timedelta(days=7) if delivery else None),
            delivery_address=kw.pop("delivery_address", customer.main_address),
            tracking_code=kw.pop("tracking_code", generate_tracking_code(customer.rut)),
            tracking_token=kw.pop("tracking_token", generate_tracking_token()),
            additional_products=kw.pop("additional_products", []),
            **kw,
        )
        db.add(r)
        db.commit()
        db.refresh(r)
        return r

    return _make


@pytest.fixture()
def make_item(db):
    counter = {"n": 0}

    def _make(**kw) -> InventoryItem:
        counter["n"] += 1
        item = InventoryItem(
            code=kw.pop("code", f"BOX-{counter['n']:04d}"),
            item_type=kw.pop("item_type", "box"),
            status=kw.pop("status", "available"),
            **kw,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make
