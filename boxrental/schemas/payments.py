import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    efectivo = "efectivo"
    transferencia = "transferencia"
    tarjeta = "tarjeta"


class PaymentCreate(BaseModel):
    rental_id: uuid.UUID
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: uuid.UUID
    rental_id: uuid.UUID
    customer_id: uuid.UUID
    amount: Decimal
    method: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
