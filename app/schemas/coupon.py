from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from app.models.coupon import DiscountType


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Z0-9_-]+$")
    description: Optional[str] = Field(None, max_length=500)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_purchase_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    per_user_limit: Optional[int] = Field(default=1, ge=1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    applicable_category_ids: List[int] = Field(default_factory=list)
    applicable_product_ids: List[int] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        return _naive_utc(value)


class CouponUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=500)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    per_user_limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    applicable_category_ids: Optional[List[int]] = None
    applicable_product_ids: Optional[List[int]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class CouponStatusUpdate(BaseModel):
    is_active: bool


class CouponResponse(BaseModel):
    id: int
    code: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase_amount: Optional[Decimal]
    max_discount_amount: Optional[Decimal]
    usage_limit: Optional[int]
    usage_count: int
    per_user_limit: Optional[int]
    start_date: datetime
    end_date: datetime
    is_active: bool
    applicable_category_ids: List[int]
    applicable_product_ids: List[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    order_amount: Decimal = Field(..., ge=0, decimal_places=2)


class CouponValidationResponse(BaseModel):
    valid: bool
    message: str
    discount_amount: Optional[Decimal] = None
    final_amount: Optional[Decimal] = None
    coupon_id: Optional[int] = None
    code: Optional[str] = None


class CouponUsageResponse(BaseModel):
    id: int
    coupon_id: int
    user_id: int
    order_id: int
    discount_amount: Decimal
    used_at: datetime

    class Config:
        from_attributes = True
