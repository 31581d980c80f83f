from datetime import date, timedelta
from typing import Optional

from ..config import settings
from ..models.models import Rental


def return_date(rental: Rental) -> Optional[date]:
    """Agreed pickup date, else delivery plus the default rental length"""
    if rental.pickup_date:
        return rental.pickup_date
    if rental.delivery_date:
        return rental.delivery_date + timedelta(days=settings.default_rental_days)
    return None
