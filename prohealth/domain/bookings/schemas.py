"""Booking schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..catalog.schemas import ServiceResponse


class BookingCreate(BaseModel):
    service_id: str
    booking_date: Optional[datetime] = None  # defaults to now

    @field_validator("service_id")
    @classmethod
    def validate_service_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Service ID is required.")
        return v.strip()


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: float
    currency: str
    payment_gateway: str
    gateway_transaction_id: Optional[str] = None
    status: str


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_id: str
    booking_date: Optional[datetime] = None
    status: str
    payment_status: str
    created_at: Optional[datetime] = None
    service: Optional[ServiceResponse] = None
    transaction: Optional[TransactionResponse] = None
