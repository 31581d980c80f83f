from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.rentals import RentalResponse, TaskCompleteRequest
from ..services.rental_status import change_rental_status
from ..services.status_machine import RentalStatus


router = APIRouter(prefix="/api/tasks", tags=["tasks"])

TASK_TARGET_STATUS = {
    "delivery": RentalStatus.entregada.value,
    "pickup": RentalStatus.retirada.value,
}


@router.post("/complete", response_model=RentalResponse)
def complete_task(payload: TaskCompleteRequest, db: Session = Depends(get_db), user: User = Depends(require_roles("admin", "driver"))):
    target = TASK_TARGET_STATUS.get(payload.task_type)
    if target is None:
        raise HTTPException(status_code=400, detail="Unknown task type")
    result = change_rental_status(db, payload.rental_id, target, source=f"{user.role}:{user.email}")
    return result.rental
