import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..schemas.emails import EmailLogResponse
from ..services.reminders import check_pickup_reminders, send_test_reminder, upcoming_reminders


router = APIRouter(prefix="/api/reminders", tags=["reminders"])


@router.get("/upcoming")
def upcoming(days: int = Query(default=7, ge=0, le=60), db: Session = Depends(get_db), _=Depends(require_admin)):
    return upcoming_reminders(db, days)


@router.post("/check")
def run_check(db: Session = Depends(get_db), _=Depends(require_admin)):
    return check_pickup_reminders(db)


@router.post("/test/{rental_id}", response_model=EmailLogResponse)
def test_reminder(rental_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    return send_test_reminder(db, rental_id)
