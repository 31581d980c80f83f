import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class AdditionalProductIn(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0)


class RentalCreate(BaseModel):
    customer_id: uuid.UUID
    box_quantity: int = Field(gt=0)
    rental_days: int = Field(default=7, ge=1)
    price_per_day: Decimal = Field(default=Decimal("0"), ge=0)
    guarantee_amount: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    delivery_date: date
    pickup_date: Optional[date] = None
    delivery_address: Optional[str] = None
    pickup_address: Optional[str] = None
    notes: Optional[str] = None
    additional_products: List[AdditionalProductIn] = []
    driver_id: Optional[uuid.UUID] = None
    item_ids: List[uuid.UUID] = []

    @field_validator('delivery_address', 'pickup_address', 'notes', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @model_validator(mode='after')
    def pickup_after_delivery(self):
        if self.pickup_date and self.pickup_date < self.delivery_date:
            raise ValueError("pickup_date must not be before delivery_date")
        return self


class RentalUpdate(BaseModel):
    box_quantity: Optional[int] = Field(default=None, gt=0)
    rental_days: Optional[int] = Field(default=None, ge=1)
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)
    guarantee_amount: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    delivery_date: Optional[date] = None
    pickup_date: Optional[date] = None
    delivery_address: Optional[str] = None
    pickup_address: Optional[str] = None
    notes: Optional[str] = None
    additional_products: Optional[List[AdditionalProductIn]] = None
    expected_version: Optional[int] = None


class StatusChangeRequest(BaseModel):
    status: str
    expected_version: Optional[int] = None

    @field_validator('status', mode='before')
    @classmethod
    def strip_status(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("status is required")
        return v


class AssignDriverRequest(BaseModel):
    driver_id: Optional[uuid.UUID] = None


class RentalResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    driver_id: Optional[uuid.UUID] = None
    status: str
    box_quantity: int
    rental_days: Optional[int] = None
    price_per_day: Optional[Decimal] = None
    guarantee_amount: Optional[Decimal] = None
    total_amount: Decimal
    paid_amount: Decimal
    delivery_date: Optional[date] = None
    pickup_date: Optional[date] = None
    delivery_address: Optional[str] = None
    pickup_address: Optional[str] = None
    tracking_code: str
    tracking_token: str
    notes: Optional[str] = None
    additional_products: Optional[list] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrackingResponse(BaseModel):
    tracking_code: str
    status: str
    status_label: str
    box_quantity: int
    delivery_date: Optional[date] = None
    pickup_date: Optional[date] = None
    delivery_address: Optional[str] = None
    pickup_address: Optional[str] = None
    customer_name: Optional[str] = None
    driver_name: Optional[str] = None


class TaskCompleteRequest(BaseModel):
    rental_id: uuid.UUID
    task_type: str  # delivery|pickup
    notes: Optional[str] = None

    @field_validator('task_type')
    @classmethod
    def known_task(cls, v: str) -> str:
        if v not in ("delivery", "pickup"):
            raise ValueError("task_type must be delivery or pickup")
        return v
