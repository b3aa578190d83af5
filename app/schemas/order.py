from typing import List, Optional
from datetime import datetime
from decimal import Decimal

import bleach
from pydantic import BaseModel, Field, field_validator

from app.models.order import OrderStatus


class OrderItemRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderItemRequest] = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        sanitized = bleach.clean(value, tags=[], attributes={}, strip=True).strip()
        if len(sanitized) > 500:
            raise ValueError("Notes too long (max 500 chars)")
        return sanitized


class PricedLine(BaseModel):
    product_id: int
    variant_id: int
    product_name: str
    variant_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderPricing(BaseModel):
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


class PricedOrder(OrderPricing):
    lines: List[PricedLine]


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    variant_id: int
    product_name: str
    variant_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    user_id: int
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    coupon_code: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    items: List[OrderItemResponse]
    order_date: datetime

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    id: int
    status: OrderStatus
    total: Decimal
    item_count: int
    order_date: datetime
