from boxrental.config import settings
from boxrental.models.models import EmailLog, EmailOutbox
from boxrental.services import mailer
from boxrental.services.notifications import (
    build_email_data,
    dispatch_notification,
    drain_outbox,
    enqueue_notification,
    notify,
)


def test_dispatch_unknown_type_writes_nothing(db, mail, make_rental):
    rental = make_rental()

    assert dispatch_notification(db, "newsletter", rental) is None
    assert db.query(EmailLog).count() == 0
    assert mail.sent == []


def test_dispatch_records_rendered_email(db, mail, make_rental):
    rental = make_rental(status="en_ruta")

    log = dispatch_notification(db, "on_route", rental)

    assert log.status == "sent"
    assert log.to_email == rental.customer.email
    assert log.to_name == rental.customer.name
    assert log.subject.startswith("🚚")
    assert log.customer_id == rental.customer_id
    assert mail.sent[0]["Subject"] == log.subject


def test_disabled_email_logs_failure(db, mail, monkeypatch, make_rental):
    monkeypatch.setattr(settings, "enable_email", False)
    rental = make_rental()

    log = dispatch_notification(db, "pending", rental)

    assert log.status == "failed"
    assert log.error_message == "Email service not configured"
    assert mail.sent == []


def test_drain_delivers_entries_left_pending(db, mail, make_rental):
    rental = make_rental(status="entregada")
    enqueue_notification(db, "delivered", rental)
    enqueue_notification(db, "picked_up", rental)
    db.commit()

    summary = drain_outbox(db)

    assert summary == {"processed": 2, "sent": 2, "failed": 0}
    assert db.query(EmailOutbox).filter(EmailOutbox.status == "pending").count() == 0
    assert sorted(log.email_type for log in db.query(EmailLog).all()) == ["delivered", "picked_up"]
    assert drain_outbox(db)["processed"] == 0


def test_drain_marks_failures_without_retrying(db, mail, make_rental):
    mail.fail_with = ConnectionRefusedError("smtp down")
    rental = make_rental()
    enqueue_notification(db, "pending", rental)
    db.commit()

    assert drain_outbox(db)["failed"] == 1
    mail.fail_with = None
    assert drain_outbox(db)["processed"] == 0
    entry = db.query(EmailOutbox).one()
    assert entry.status == "failed"
    assert entry.attempts == 1


def test_notify_with_dedup_key_sends_once(db, mail, make_rental):
    rental = make_rental()

    first = notify(db, "pending", rental, dedup_key="once")
    second = notify(db, "pending", rental, dedup_key="once")

    assert first.status == "sent"
    assert second is None
    assert len(mail.sent) == 1


def test_build_email_data_uses_driver_and_products(db, make_rental, make_driver):
    driver = make_driver(name="Pedro", phone="+56955555555")
    rental = make_rental(driver_id=driver.id, additional_products=[{"name": "Base móvil", "quantity": 2, "price": 9000}])

    data = build_email_data(rental)

    assert data.driver_name == "Pedro"
    assert data.additional_products[0].subtotal == 18000
    assert data.tracking_url.endswith(f"/track/{rental.tracking_code}/{rental.tracking_token}")


def test_message_carries_html_and_text_parts(monkeypatch):
    monkeypatch.setattr(settings, "mail_cc", "contacto@arriendocajas.cl")

    msg = mailer.build_message("a@example.com", "Hola", "<p>hola</p>", text="hola", to_name="Ana")

    assert msg["Cc"] == "contacto@arriendocajas.cl"
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>hola</p>"
    assert msg.get_body(preferencelist=("plain",)).get_content().strip() == "hola"
