import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..config import settings
from ..db import get_db
from ..models.models import EmailLog
from ..schemas.emails import EmailLogDetail, EmailLogResponse, EmailPreview
from ..services import mailer
from ..services.email_templates import TEMPLATES, render_email, sample_email_data
from ..services.notifications import drain_outbox, get_email_log
from ..services.reports import email_stats


router = APIRouter(prefix="/api", tags=["emails"])


@router.get("/admin/email-logs", response_model=List[EmailLogResponse])
def list_email_logs(
    email_type: Optional[str] = None,
    status: Optional[str] = None,
    to_email: Optional[str] = None,
    rental_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    q = db.query(EmailLog)
    if email_type:
        q = q.filter(EmailLog.email_type == email_type)
    if status:
        q = q.filter(EmailLog.status == status)
    if to_email:
        q = q.filter(EmailLog.to_email.ilike(f"%{to_email}%"))
    if rental_id:
        q = q.filter(EmailLog.rental_id == rental_id)
    return q.order_by(EmailLog.created_at.desc()).limit(min(limit, 500)).all()


@router.get("/admin/email-logs/{log_id}", response_model=EmailLogDetail)
def get_email_log_detail(log_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin)):
    row = get_email_log(db, log_id)
    if not row:
        raise HTTPException(status_code=404, detail="Email log not found")
    return row


@router.get("/admin/email-stats")
def get_email_stats(db: Session = Depends(get_db), _=Depends(require_admin)):
    return email_stats(db)


@router.post("/admin/email-outbox/drain")
def drain(db: Session = Depends(get_db), _=Depends(require_admin)):
    return drain_outbox(db)


@router.get("/email/preview", response_model=EmailPreview)
def preview(type: str, _=Depends(require_admin)):
    rendered = render_email(type, sample_email_data())
    if rendered is None:
        raise HTTPException(status_code=404, detail=f"Unknown email type. Available: {', '.join(TEMPLATES)}")
    return EmailPreview(email_type=type, subject=rendered.subject, html=rendered.html, text=rendered.text)


@router.get("/email/config")
def email_config(_=Depends(require_admin)):
    return {
        "configured": mailer.is_configured(),
        "enabled": settings.enable_email,
        "smtp_host": settings.smtp_host,
        "smtp_port": settings.smtp_port,
        "mail_from": settings.mail_from,
        "templates": list(TEMPLATES),
    }
