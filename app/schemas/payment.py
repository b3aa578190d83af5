from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from app.models.payment import PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)  # Gateway charge id


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)  # None = full refund
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    payment_method: PaymentMethod
    status: PaymentStatus
    amount: Decimal
    currency: str
    transaction_id: Optional[str]
    payment_date: Optional[datetime]
    refunded_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None

    class Config:
        from_attributes = True
