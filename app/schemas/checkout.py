from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from app.models.payment import PaymentMethod
from app.schemas.order import OrderCreate, OrderResponse
from app.schemas.payment import PaymentResponse


class CheckoutRequest(OrderCreate):
    coupon_code: Optional[str] = Field(None, min_length=1, max_length=50)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)


class CheckoutResponse(BaseModel):
    order: OrderResponse
    payment: PaymentResponse
    coupon_code: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
