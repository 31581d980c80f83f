import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EmailLogResponse(BaseModel):
    id: uuid.UUID
    email_type: str
    to_email: str
    to_name: Optional[str] = None
    subject: str
    rental_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    status: str
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailLogDetail(EmailLogResponse):
    html_content: str


class EmailPreview(BaseModel):
    email_type: str
    subject: str
    html: str
    text: str
