"""
Domain errors raised by the rental services.
Routes translate them into HTTP responses.
"""
from typing import Optional


class RentalError(Exception):
    """Base class for rental domain errors"""


class RentalNotFound(RentalError):
    def __init__(self, rental_id):
        self.rental_id = rental_id
        super().__init__(f"Rental {rental_id} not found")


class InvalidStatusTransition(RentalError):
    def __init__(self, current: Optional[str], target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition {current!r} -> {target!r} is not allowed")


class StaleRentalVersion(RentalError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Rental was modified (expected version {expected}, current {actual})")


class ReservationConflict(RentalError):
    def __init__(self, item_code: str, conflicting_rental_id=None):
        self.item_code = item_code
        self.conflicting_rental_id = conflicting_rental_id
        super().__init__(f"Item {item_code} is already reserved for an overlapping period")


class MailNotConfigured(Exception):
    """Outbound mail transport has no host/sender configured"""
