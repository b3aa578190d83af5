from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException
from datetime import datetime
from decimal import Decimal
from typing import Optional
import structlog

from app.core.config import settings
from app.core.exceptions import (
    CouponAlreadyApplied,
    CouponPolicyViolation,
    CouponUsageLimitReached,
    DuplicateCouponCode,
    EntityNotFound,
)
from app.models.coupon import Coupon, DiscountType
from app.models.coupon_usage import CouponUsage
from app.models.order import Order
from app.models.user import User
from app.schemas.coupon import CouponCreate, CouponUpdate, CouponResponse, CouponValidationResponse
from app.utils.money import format_money, to_money, truncate_money

logger = structlog.get_logger()

MAX_PERCENTAGE = Decimal("100")


def calculate_discount(coupon: Coupon, order_amount: Decimal) -> Decimal:
    """Discount a coupon grants on ``order_amount``, capped and never above the amount itself."""
    # Sub-cent input is cut down so the clamp below can never round past it
    order_amount = truncate_money(order_amount)

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = to_money(order_amount * Decimal(coupon.discount_value) / MAX_PERCENTAGE)
    else:
        discount = Decimal(coupon.discount_value)

    if coupon.max_discount_amount is not None and discount > coupon.max_discount_amount:
        discount = Decimal(coupon.max_discount_amount)

    if discount > order_amount:
        discount = order_amount

    return to_money(discount)


def _rejected(message: str) -> CouponValidationResponse:
    return CouponValidationResponse(valid=False, message=message)


def evaluate_coupon(
    coupon: Optional[Coupon],
    user_usage_count: int,
    order_amount: Decimal,
    now: datetime,
) -> CouponValidationResponse:
    """
    Decide whether a coupon may be applied, without touching storage.

    Checks run in a fixed order and the first failing one decides the message.
    """
    order_amount = truncate_money(order_amount)

    if coupon is None:
        return _rejected("Invalid or inactive coupon code")

    if now < coupon.start_date:
        return _rejected("Coupon is not active yet")

    if now >= coupon.end_date:
        return _rejected("Coupon has expired")

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return _rejected("Coupon usage limit reached")

    if coupon.per_user_limit is not None and user_usage_count >= coupon.per_user_limit:
        return _rejected("Per-user usage limit reached for this coupon")

    if coupon.min_purchase_amount is not None and order_amount < coupon.min_purchase_amount:
        minimum = format_money(coupon.min_purchase_amount, settings.CURRENCY_SYMBOL)
        return _rejected(f"Minimum purchase amount of {minimum} required")

    discount_amount = calculate_discount(coupon, order_amount)
    return CouponValidationResponse(
        valid=True,
        message="Coupon applied successfully",
        discount_amount=discount_amount,
        final_amount=order_amount - discount_amount,
        coupon_id=coupon.id,
        code=coupon.code,
    )


def _check_coupon_policy(discount_type, discount_value, start_date, end_date, usage_limit=None, usage_count=0) -> None:
    if end_date <= start_date:
        raise CouponPolicyViolation("End date must be after start date")
    if discount_type == DiscountType.PERCENTAGE and discount_value > MAX_PERCENTAGE:
        raise CouponPolicyViolation("Percentage discount cannot exceed 100%")
    if usage_limit is not None and usage_limit < usage_count:
        raise CouponPolicyViolation(
            f"Usage limit cannot be lower than current usage count ({usage_count})"
        )


class CouponService:

    @staticmethod
    def count_user_usages(db: Session, coupon_id: int, user_id: int) -> int:
        return db.query(func.count(CouponUsage.id)).filter(
            and_(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
        ).scalar() or 0

    @staticmethod
    def create_coupon(db: Session, coupon_data: CouponCreate) -> CouponResponse:
        """Create a new coupon (admin only)."""
        # Codes are unique across active and inactive coupons alike
        existing = db.query(Coupon.id).filter(Coupon.code == coupon_data.code).first()
        if existing:
            raise DuplicateCouponCode(coupon_data.code)

        _check_coupon_policy(
            coupon_data.discount_type,
            coupon_data.discount_value,
            coupon_data.start_date,
            coupon_data.end_date,
        )

        coupon = Coupon(**coupon_data.model_dump())
        coupon.usage_count = 0

        db.add(coupon)
        db.commit()
        db.refresh(coupon)

        logger.info("coupon_created", coupon_id=coupon.id, code=coupon.code)
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def update_coupon(db: Session, coupon_id: int, coupon_data: CouponUpdate) -> CouponResponse:
        """Update a coupon (admin only)."""
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise EntityNotFound("Coupon", coupon_id)

        update_data = coupon_data.model_dump(exclude_unset=True)

        # Policy is checked against the merged state before anything is written
        _check_coupon_policy(
            update_data.get("discount_type", coupon.discount_type),
            update_data.get("discount_value", coupon.discount_value),
            update_data.get("start_date", coupon.start_date),
            update_data.get("end_date", coupon.end_date),
            update_data.get("usage_limit", coupon.usage_limit),
            coupon.usage_count or 0,
        )

        for key, value in update_data.items():
            setattr(coupon, key, value)

        db.commit()
        db.refresh(coupon)

        logger.info("coupon_updated", coupon_id=coupon.id, fields=sorted(update_data))
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def update_coupon_status(db: Session, coupon_id: int, is_active: bool) -> CouponResponse:
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise EntityNotFound("Coupon", coupon_id)

        coupon.is_active = is_active
        db.commit()
        db.refresh(coupon)
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def delete_coupon(db: Session, coupon_id: int):
        """Delete a coupon (admin only)."""
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise EntityNotFound("Coupon", coupon_id)

        db.delete(coupon)
        db.commit()
        logger.info("coupon_deleted", coupon_id=coupon_id)

    @staticmethod
    def get_coupon(db: Session, coupon_id: int) -> CouponResponse:
        """Get a coupon by ID."""
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise EntityNotFound("Coupon", coupon_id)

        return CouponResponse.model_validate(coupon)

    @staticmethod
    def list_coupons(db: Session, skip: int = 0, limit: int = 100) -> list[CouponResponse]:
        """List all coupons."""
        coupons = db.query(Coupon).order_by(Coupon.id).offset(skip).limit(limit).all()
        return [CouponResponse.model_validate(coupon) for coupon in coupons]

    @staticmethod
    def get_available_coupons(
        db: Session,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> list[CouponResponse]:
        """Coupons the user could still redeem right now."""
        now = now or datetime.utcnow()
        coupons = (
            db.query(Coupon)
            .filter(
                Coupon.is_active == True,
                Coupon.start_date <= now,
                Coupon.end_date > now,
            )
            .order_by(Coupon.end_date)
            .all()
        )

        available = []
        for coupon in coupons:
            if not coupon.has_remaining_uses():
                continue
            if coupon.per_user_limit is not None:
                used = CouponService.count_user_usages(db, coupon.id, user_id)
                if used >= coupon.per_user_limit:
                    continue
            available.append(CouponResponse.model_validate(coupon))
        return available

    @staticmethod
    def validate_coupon(
        db: Session,
        user_id: int,
        coupon_code: str,
        order_amount: Decimal,
        now: Optional[datetime] = None,
    ) -> CouponValidationResponse:
        """Validate a coupon code and preview its discount. Read-only."""
        coupon = db.query(Coupon).filter(
            and_(Coupon.code == coupon_code, Coupon.is_active == True)
        ).first()

        user_usage_count = 0
        if coupon is not None:
            user_usage_count = CouponService.count_user_usages(db, coupon.id, user_id)

        result = evaluate_coupon(coupon, user_usage_count, Decimal(order_amount), now or datetime.utcnow())
        if not result.valid:
            logger.info("coupon_rejected", code=coupon_code, user_id=user_id, reason=result.message)
        return result

    @staticmethod
    def apply_coupon(
        db: Session,
        coupon_id: int,
        user_id: int,
        order_id: int,
        discount_amount: Decimal,
        commit: bool = True,
    ) -> CouponUsage:
        """
        Record that a coupon was redeemed for an order.

        The coupon row is locked for the whole read-modify-write so the
        per-order guard, the usage limit and the counter increment are
        serialized per coupon. With ``commit=False`` the caller owns the
        transaction and the usage is only flushed.
        """
        try:
            coupon = (
                db.query(Coupon)
                .filter(Coupon.id == coupon_id)
                .with_for_update()
                .first()
            )
            if not coupon:
                raise EntityNotFound("Coupon", coupon_id)

            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                raise EntityNotFound("User", user_id)

            order = db.query(Order).filter(Order.id == order_id).first()
            if not order:
                raise EntityNotFound("Order", order_id)

            already_applied = db.query(CouponUsage.id).filter(
                and_(CouponUsage.coupon_id == coupon_id, CouponUsage.order_id == order_id)
            ).first()
            if already_applied:
                raise CouponAlreadyApplied()

            if not coupon.has_remaining_uses():
                raise CouponUsageLimitReached()

            usage = CouponUsage(
                coupon_id=coupon.id,
                user_id=user.id,
                order_id=order.id,
                discount_amount=to_money(discount_amount),
                used_at=datetime.utcnow(),
            )
            db.add(usage)
            coupon.increment_usage_count()
            order.coupon_code = coupon.code
            db.flush()

            if commit:
                db.commit()
                db.refresh(usage)

            logger.info(
                "coupon_redeemed",
                coupon_id=coupon_id,
                user_id=user_id,
                order_id=order_id,
                discount_amount=str(usage.discount_amount),
                usage_count=coupon.usage_count,
            )
            return usage
        except IntegrityError:
            # Unique (coupon_id, order_id) caught a concurrent redemption
            db.rollback()
            raise CouponAlreadyApplied()
        except HTTPException:
            db.rollback()
            raise
        except Exception:
            db.rollback()
            logger.exception("coupon_apply_failed", coupon_id=coupon_id, user_id=user_id, order_id=order_id)
            raise
