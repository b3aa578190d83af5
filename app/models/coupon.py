from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Enum, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
import enum
from app.db.base_class import Base


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)  # Percentage (0-100) or fixed amount

    min_purchase_amount = Column(Numeric(10, 2), default=Decimal("0.00"), nullable=True)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)  # Cap on the computed discount

    usage_limit = Column(Integer, nullable=True)  # Global usage limit
    usage_count = Column(Integer, default=0, nullable=False)

    per_user_limit = Column(Integer, default=1, nullable=True)  # How many times per user

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Empty list = unrestricted
    applicable_category_ids = Column(JSON, default=list, nullable=False)
    applicable_product_ids = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    def is_within_window(self, now: datetime) -> bool:
        return self.start_date <= now < self.end_date

    def has_remaining_uses(self) -> bool:
        return self.usage_limit is None or self.usage_count < self.usage_limit

    def increment_usage_count(self) -> None:
        self.usage_count = (self.usage_count or 0) + 1
