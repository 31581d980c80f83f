from datetime import date

import pytest

from boxrental.models.models import InventoryReservation
from boxrental.services.errors import ReservationConflict
from boxrental.services.inventory import (
    ItemNotReservable,
    available_items,
    inventory_summary,
    move_reservations,
    release_reservations,
    reserve_items,
)


def _rental(make_rental, start, end):
    return make_rental(delivery_date=start, pickup_date=end)


def test_reserve_creates_rows_for_rental_window(db, make_rental, make_item):
    rental = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    item = make_item()

    rows = reserve_items(db, rental, [item.id])
    db.commit()

    assert len(rows) == 1
    assert rows[0].start_date == date(2025, 1, 10)
    assert rows[0].end_date == date(2025, 1, 17)


def test_overlapping_reservation_conflicts(db, make_rental, make_item):
    item = make_item()
    first = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    second = _rental(make_rental, date(2025, 1, 17), date(2025, 1, 24))
    reserve_items(db, first, [item.id])
    db.commit()

    with pytest.raises(ReservationConflict) as exc:
        reserve_items(db, second, [item.id])

    assert exc.value.item_code == item.code
    assert exc.value.conflicting_rental_id == first.id


def test_adjacent_ranges_do_not_conflict(db, make_rental, make_item):
    item = make_item()
    first = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 16))
    second = _rental(make_rental, date(2025, 1, 17), date(2025, 1, 24))
    reserve_items(db, first, [item.id])
    db.commit()

    reserve_items(db, second, [item.id])
    db.commit()

    assert db.query(InventoryReservation).count() == 2


def test_released_reservation_frees_item(db, make_rental, make_item):
    item = make_item()
    first = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    second = _rental(make_rental, date(2025, 1, 12), date(2025, 1, 20))
    reserve_items(db, first, [item.id])
    db.commit()

    assert release_reservations(db, first.id) == 1
    db.commit()
    reserve_items(db, second, [item.id])
    db.commit()


def test_unavailable_item_is_rejected(db, make_rental, make_item):
    item = make_item(status="maintenance")
    rental = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))

    with pytest.raises(ItemNotReservable):
        reserve_items(db, rental, [item.id])


def test_available_items_excludes_reserved_and_unavailable(db, make_rental, make_item):
    reserved = make_item(code="BOX-0001")
    free = make_item(code="BOX-0002")
    make_item(code="BOX-0003", status="damaged")
    make_item(code="CART-0001", item_type="cart")
    rental = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    reserve_items(db, rental, [reserved.id])
    db.commit()

    codes = [i.code for i in available_items(db, date(2025, 1, 15), date(2025, 1, 20), "box")]
    assert codes == [free.code]
    codes = [i.code for i in available_items(db, date(2025, 1, 18), date(2025, 1, 20), "box")]
    assert codes == ["BOX-0001", "BOX-0002"]


def test_inventory_summary_counts(db, make_item):
    make_item()
    make_item(status="damaged")
    make_item(item_type="cart")

    summary = inventory_summary(db)

    assert summary["total"] == 3
    assert summary["by_status"] == {"available": 2, "damaged": 1}
    assert summary["by_type"] == {"box": 2, "cart": 1}


def test_reserving_same_item_twice_keeps_one_row(db, make_rental, make_item):
    item = make_item()
    rental = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))

    reserve_items(db, rental, [item.id, item.id])
    reserve_items(db, rental, [item.id])
    db.commit()

    assert db.query(InventoryReservation).filter(InventoryReservation.rental_id == rental.id).count() == 1


def test_move_reservations_follows_new_dates(db, make_rental, make_item):
    item = make_item()
    rental = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    reserve_items(db, rental, [item.id])
    db.commit()

    rental.delivery_date = date(2025, 2, 10)
    rental.pickup_date = date(2025, 2, 17)
    assert move_reservations(db, rental) == 1
    db.commit()

    row = db.query(InventoryReservation).one()
    assert (row.start_date, row.end_date) == (date(2025, 2, 10), date(2025, 2, 17))
    assert [i.code for i in available_items(db, date(2025, 1, 10), date(2025, 1, 17))] == [item.code]


def test_move_reservations_onto_booked_dates_conflicts(db, make_rental, make_item):
    item = make_item()
    moving = _rental(make_rental, date(2025, 1, 10), date(2025, 1, 17))
    other = _rental(make_rental, date(2025, 2, 12), date(2025, 2, 14))
    reserve_items(db, moving, [item.id])
    reserve_items(db, other, [item.id])
    db.commit()

    moving.delivery_date = date(2025, 2, 10)
    moving.pickup_date = date(2025, 2, 17)
    with pytest.raises(ReservationConflict) as exc:
        move_reservations(db, moving)

    assert exc.value.conflicting_rental_id == other.id
