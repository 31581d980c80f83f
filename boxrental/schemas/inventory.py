import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class ItemType(str, Enum):
    box = "box"
    cart = "cart"
    strap = "strap"
    base = "base"


class ItemStatus(str, Enum):
    available = "available"
    unavailable = "unavailable"
    maintenance = "maintenance"
    damaged = "damaged"


class InventoryItemCreate(BaseModel):
    code: str
    item_type: ItemType = ItemType.box
    status: ItemStatus = ItemStatus.available
    notes: Optional[str] = None

    @field_validator('code', mode='before')
    @classmethod
    def normalize_code(cls, v):
        v = str(v or "").strip().upper()
        if not v:
            raise ValueError("code is required")
        return v


class InventoryItemUpdate(BaseModel):
    code: Optional[str] = None
    item_type: Optional[ItemType] = None
    status: Optional[ItemStatus] = None
    notes: Optional[str] = None


class InventoryStatusUpdate(BaseModel):
    status: ItemStatus


class InventoryItemResponse(BaseModel):
    id: uuid.UUID
    code: str
    item_type: str
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservationResponse(BaseModel):
    id: uuid.UUID
    item_id: uuid.UUID
    rental_id: uuid.UUID
    start_date: date
    end_date: date
    released_at: Optional[datetime] = None

    class Config:
        from_attributes = True
