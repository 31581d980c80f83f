import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from ..services.tracking import format_rut, is_valid_rut


class CustomerBase(BaseModel):
    name: str
    rut: str
    email: EmailStr
    phone: str
    main_address: Optional[str] = None
    secondary_address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('name', 'phone', mode='before')
    @classmethod
    def strip_required(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator('main_address', 'secondary_address', 'notes', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('rut')
    @classmethod
    def valid_rut(cls, v: str) -> str:
        if not is_valid_rut(v):
            raise ValueError("Invalid RUT")
        return format_rut(v)


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    rut: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    main_address: Optional[str] = None
    secondary_address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('rut')
    @classmethod
    def valid_rut(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not is_valid_rut(v):
            raise ValueError("Invalid RUT")
        return format_rut(v)


class CustomerResponse(BaseModel):
    id: uuid.UUID
    name: str
    rut: str
    email: str
    phone: str
    main_address: Optional[str] = None
    secondary_address: Optional[str] = None
    notes: Optional[str] = None
    total_rentals: int = 0
    active_rentals: int = 0
    current_debt: Decimal = Decimal("0")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
