from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.rentals import TrackingResponse
from ..services.status_machine import STATUS_LABELS
from ..services.tracking import find_rental_by_tracking, tracking_qr_png, tracking_url


router = APIRouter(prefix="/api/track", tags=["tracking"])


def _lookup(db: Session, code: str, token: str):
    rental = find_rental_by_tracking(db, code, token)
    if not rental:
        raise HTTPException(status_code=404, detail="Rental not found")
    return rental


@router.get("/{code}/{token}", response_model=TrackingResponse)
def track(code: str, token: str, db: Session = Depends(get_db)):
    rental = _lookup(db, code, token)
    return TrackingResponse(
        tracking_code=rental.tracking_code,
        status=rental.status,
        status_label=STATUS_LABELS.get(rental.status, rental.status),
        box_quantity=rental.box_quantity,
        delivery_date=rental.delivery_date,
        pickup_date=rental.pickup_date,
        delivery_address=rental.delivery_address,
        pickup_address=rental.pickup_address,
        customer_name=rental.customer.name if rental.customer else None,
        driver_name=rental.driver.name if rental.driver else None,
    )


@router.get("/{code}/{token}/qr.png")
def track_qr(code: str, token: str, db: Session = Depends(get_db)):
    rental = _lookup(db, code, token)
    png = tracking_qr_png(tracking_url(rental.tracking_code, rental.tracking_token))
    return Response(content=png, media_type="image/png")
