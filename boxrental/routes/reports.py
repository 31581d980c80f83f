from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db
from ..services.reports import REPORT_TYPES, build_report, dashboard_metrics, export_rentals_csv


router = APIRouter(prefix="/api", tags=["reports"])


@router.get("/dashboard/metrics")
def metrics(start_date: Optional[date] = None, end_date: Optional[date] = None, db: Session = Depends(get_db), _=Depends(require_admin)):
    return dashboard_metrics(db, start_date, end_date)


@router.get("/reports")
def report(type: str, start_date: Optional[date] = None, end_date: Optional[date] = None, db: Session = Depends(get_db), _=Depends(require_admin)):
    if type not in REPORT_TYPES:
        raise HTTPException(status_code=400, detail=f"type must be one of {', '.join(REPORT_TYPES)}")
    return build_report(db, type, start_date, end_date)


@router.get("/reports/export")
def export(start_date: Optional[date] = None, end_date: Optional[date] = None, db: Session = Depends(get_db), _=Depends(require_admin)):
    content = export_rentals_csv(db, start_date, end_date)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="rentals.csv"'},
    )
