import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class DriverCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    is_active: bool = True


class DriverUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class DriverResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str
    is_active: bool
    current_assignments: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
