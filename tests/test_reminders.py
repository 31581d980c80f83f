from datetime import date, timedelta

from boxrental.config import settings
from boxrental.models.models import EmailLog, EmailOutbox
from boxrental.services import reminders
from boxrental.services.reminders import (
    check_pickup_reminders,
    reminder_dedup_key,
    return_date,
    send_test_reminder,
    upcoming_reminders,
)


TODAY = date(2025, 1, 15)


def _reminder_logs(db):
    return db.query(EmailLog).filter(EmailLog.email_type == "pending_reminder").all()


def test_return_date_prefers_pickup_date(make_rental):
    rental = make_rental(delivery_date=date(2025, 1, 10), pickup_date=date(2025, 1, 20))
    assert return_date(rental) == date(2025, 1, 20)


def test_return_date_falls_back_to_delivery_plus_default_days(make_rental):
    rental = make_rental(delivery_date=date(2025, 1, 10), pickup_date=None)
    assert return_date(rental) == date(2025, 1, 17)


def test_return_date_none_without_dates(make_rental):
    rental = make_rental(delivery_date=None, pickup_date=None)
    assert return_date(rental) is None


def test_sweep_sends_only_for_delivered_rentals_due_in_two_days(db, mail, make_rental):
    due = make_rental(status="entregada", delivery_date=date(2025, 1, 10), pickup_date=TODAY + timedelta(days=2))
    make_rental(status="entregada", delivery_date=date(2025, 1, 10), pickup_date=TODAY + timedelta(days=3))
    make_rental(status="en_ruta", delivery_date=date(2025, 1, 10), pickup_date=TODAY + timedelta(days=2))

    summary = check_pickup_reminders(db, today=TODAY)

    assert summary["checked"] == 2
    assert summary["sent"] == 1
    logs = _reminder_logs(db)
    assert [log.rental_id for log in logs] == [due.id]
    assert logs[0].status == "sent"
    assert len(mail.sent) == 1


def test_sweep_uses_default_rental_days_when_pickup_missing(db, make_rental):
    make_rental(status="entregada", delivery_date=TODAY - timedelta(days=5), pickup_date=None)

    summary = check_pickup_reminders(db, today=TODAY)

    assert summary["sent"] == 1
    html = _reminder_logs(db)[0].html_content
    assert "17-01-2025" in html
    assert "Por confirmar" not in html


def test_sweep_twice_sends_twice_by_default(db, make_rental):
    make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))

    check_pickup_reminders(db, today=TODAY)
    check_pickup_reminders(db, today=TODAY)

    assert len(_reminder_logs(db)) == 2


def test_sweep_twice_sends_once_with_dedup(db, monkeypatch, make_rental):
    monkeypatch.setattr(settings, "dedupe_reminders", True)
    rental = make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))

    first = check_pickup_reminders(db, today=TODAY)
    second = check_pickup_reminders(db, today=TODAY)

    assert first["sent"] == 1
    assert second["sent"] == 0
    assert second["skipped"] == 1
    assert len(_reminder_logs(db)) == 1
    key = reminder_dedup_key(rental, TODAY + timedelta(days=2))
    assert key == f"reminder:{rental.id}:pending_reminder:2025-01-17"
    assert db.query(EmailOutbox).filter(EmailOutbox.dedup_key == key).count() == 1


def test_sweep_continues_after_a_rental_fails(db, monkeypatch, make_rental):
    broken = make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))
    healthy = make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))
    real_notify = reminders.notify

    def flaky_notify(session, email_type, rental, dedup_key=None):
        if rental.id == broken.id:
            raise RuntimeError("template exploded")
        return real_notify(session, email_type, rental, dedup_key=dedup_key)

    monkeypatch.setattr(reminders, "notify", flaky_notify)

    summary = check_pickup_reminders(db, today=TODAY)

    assert summary["failed"] == 1
    assert summary["sent"] == 1
    assert [log.rental_id for log in _reminder_logs(db)] == [healthy.id]


def test_transport_failure_counts_as_failed(db, mail, make_rental):
    mail.fail_with = OSError("connection reset")
    make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))

    summary = check_pickup_reminders(db, today=TODAY)

    assert summary["failed"] == 1
    assert _reminder_logs(db)[0].status == "failed"


def test_upcoming_reminders_window_and_order(db, make_rental):
    later = make_rental(status="entregada", pickup_date=TODAY + timedelta(days=5))
    sooner = make_rental(status="entregada", pickup_date=TODAY + timedelta(days=2))
    make_rental(status="entregada", pickup_date=TODAY + timedelta(days=1))
    make_rental(status="entregada", pickup_date=TODAY + timedelta(days=20))

    out = upcoming_reminders(db, days=7, today=TODAY)

    assert [r["rental_id"] for r in out] == [str(sooner.id), str(later.id)]
    assert out[0]["days_until_reminder"] == 0
    assert out[1]["days_until_reminder"] == 3
    assert out[1]["days_until_return"] == 5
    assert out[1]["reminder_date"] == "2025-01-18"


def test_send_test_reminder_ignores_dates(db, make_rental):
    rental = make_rental(status="programada", pickup_date=TODAY + timedelta(days=30))

    log = send_test_reminder(db, rental.id)

    assert log.email_type == "pending_reminder"
    assert log.status == "sent"
