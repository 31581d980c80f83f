import smtplib
from datetime import date

import pytest

from boxrental.config import settings
from boxrental.models.models import EmailLog, EmailOutbox, InventoryReservation, Rental
from boxrental.services.errors import InvalidStatusTransition, RentalNotFound, StaleRentalVersion
from boxrental.services.inventory import reserve_items
from boxrental.services.rental_status import change_rental_status
from boxrental.services.status_machine import (
    EMAIL_TYPE_BY_STATUS,
    TRANSITIONS,
    allowed_targets,
    check_transition,
    is_allowed,
)


def _logs(db, rental_id):
    return db.query(EmailLog).filter(EmailLog.rental_id == rental_id).all()


def test_transition_table_is_forward_only_plus_cancel():
    assert is_allowed("pendiente", "programada")
    assert is_allowed("retirada", "finalizada")
    assert is_allowed("en_ruta", "cancelada")
    assert not is_allowed("programada", "pendiente")
    assert not is_allowed("finalizada", "cancelada")
    assert not is_allowed("cancelada", "pendiente")
    assert allowed_targets("entregada") == ["cancelada", "retiro_programado"]
    assert ("pendiente", "cancelada") in TRANSITIONS


def test_check_transition_rejects_unknown_status():
    with pytest.raises(InvalidStatusTransition):
        check_transition("pendiente", "bogus")


def test_programada_assigns_least_loaded_active_driver(db, make_rental, make_driver):
    busy = make_driver(name="Ocupado")
    free = make_driver(name="Libre")
    make_driver(name="Inactivo", is_active=False)
    make_rental(status="en_ruta", driver_id=busy.id)
    rental = make_rental()

    result = change_rental_status(db, rental.id, "programada")

    assert result.rental.driver_id == free.id
    assert result.assigned_driver.id == free.id


def test_programada_keeps_existing_driver(db, make_rental, make_driver):
    first = make_driver()
    make_driver()
    rental = make_rental(driver_id=first.id)

    result = change_rental_status(db, rental.id, "programada")

    assert result.rental.driver_id == first.id
    assert result.assigned_driver is None


def test_programada_without_active_driver_leaves_rental_unassigned(db, make_rental, make_driver):
    make_driver(is_active=False)
    rental = make_rental()

    result = change_rental_status(db, rental.id, "programada")

    assert result.rental.status == "programada"
    assert result.rental.driver_id is None


@pytest.mark.parametrize("status", sorted(EMAIL_TYPE_BY_STATUS))
def test_each_templated_transition_writes_one_sent_log(db, mail, make_rental, make_driver, status):
    make_driver()
    rental = make_rental()

    result = change_rental_status(db, rental.id, status)

    logs = _logs(db, rental.id)
    assert len(logs) == 1
    assert logs[0].email_type == EMAIL_TYPE_BY_STATUS[status]
    assert logs[0].status == "sent"
    assert logs[0].sent_at is not None
    assert result.email_log.id == logs[0].id
    assert len(mail.sent) == 1
    outbox = db.query(EmailOutbox).filter(EmailOutbox.rental_id == rental.id).one()
    assert outbox.status == "sent"
    assert outbox.email_log_id == logs[0].id


def test_transport_failure_is_logged_and_transition_persists(db, mail, make_rental):
    mail.fail_with = smtplib.SMTPException("relay refused")
    rental = make_rental(status="programada")

    result = change_rental_status(db, rental.id, "en_ruta")

    assert result.rental.status == "en_ruta"
    logs = _logs(db, rental.id)
    assert len(logs) == 1
    assert logs[0].status == "failed"
    assert "relay refused" in logs[0].error_message


def test_unconfigured_transport_logs_failed(db, mail, monkeypatch, make_rental):
    monkeypatch.setattr(settings, "smtp_host", None)
    rental = make_rental(status="en_ruta")

    change_rental_status(db, rental.id, "entregada")

    logs = _logs(db, rental.id)
    assert len(logs) == 1
    assert logs[0].status == "failed"
    assert logs[0].error_message == "Email service not configured"
    assert mail.sent == []


def test_same_transition_twice_sends_twice(db, mail, make_rental):
    rental = make_rental(status="en_ruta")

    change_rental_status(db, rental.id, "entregada")
    change_rental_status(db, rental.id, "entregada")

    assert len(_logs(db, rental.id)) == 2
    assert len(mail.sent) == 2


@pytest.mark.parametrize("status", ["retiro_programado", "cancelada"])
def test_statuses_without_template_send_nothing(db, mail, make_rental, status):
    rental = make_rental(status="entregada")

    result = change_rental_status(db, rental.id, status)

    assert result.rental.status == status
    assert result.email_log is None
    assert _logs(db, rental.id) == []
    assert mail.sent == []


def test_unknown_status_is_persisted_in_default_mode(db, mail, make_rental):
    rental = make_rental()

    result = change_rental_status(db, rental.id, "bogus")

    assert result.rental.status == "bogus"
    assert _logs(db, rental.id) == []


def test_strict_mode_rejects_unknown_and_illegal_statuses(db, monkeypatch, make_rental):
    monkeypatch.setattr(settings, "strict_status_transitions", True)
    rental = make_rental()

    with pytest.raises(InvalidStatusTransition):
        change_rental_status(db, rental.id, "bogus")
    with pytest.raises(InvalidStatusTransition):
        change_rental_status(db, rental.id, "entregada")

    db.expire_all()
    assert db.get(Rental, rental.id).status == "pendiente"
    assert _logs(db, rental.id) == []


def test_strict_mode_allows_legal_transition(db, monkeypatch, make_rental):
    monkeypatch.setattr(settings, "strict_status_transitions", True)
    rental = make_rental(status="entregada")

    result = change_rental_status(db, rental.id, "retiro_programado")

    assert result.rental.status == "retiro_programado"


def test_version_increments_on_each_write(db, make_rental):
    rental = make_rental()
    assert rental.version == 1

    change_rental_status(db, rental.id, "programada")
    result = change_rental_status(db, rental.id, "en_ruta", expected_version=2)

    assert result.rental.version == 3


def test_stale_version_is_rejected_and_nothing_written(db, mail, make_rental):
    rental = make_rental()
    change_rental_status(db, rental.id, "programada")

    with pytest.raises(StaleRentalVersion):
        change_rental_status(db, rental.id, "en_ruta", expected_version=1)

    db.expire_all()
    assert db.get(Rental, rental.id).status == "programada"
    assert [log.email_type for log in _logs(db, rental.id)] == ["paid"]


def test_missing_rental_raises(db):
    import uuid

    with pytest.raises(RentalNotFound):
        change_rental_status(db, uuid.uuid4(), "programada")


def test_terminal_status_releases_reservations(db, make_rental, make_item):
    rental = make_rental(status="retirada", delivery_date=date(2025, 1, 10), pickup_date=date(2025, 1, 17))
    item = make_item()
    reserve_items(db, rental, [item.id])
    db.commit()

    change_rental_status(db, rental.id, "finalizada")

    row = db.query(InventoryReservation).filter(InventoryReservation.rental_id == rental.id).one()
    assert row.released_at is not None


def test_customer_counters_follow_status(db, make_customer, make_rental):
    customer = make_customer()
    rental = make_rental(customer=customer)
    make_rental(customer=customer, status="entregada")

    change_rental_status(db, rental.id, "cancelada")

    db.refresh(customer)
    assert customer.total_rentals == 2
    assert customer.active_rentals == 1
    assert customer.current_debt == 90000
