from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from app.core.exceptions import CouponRejected
from app.models.user import User
from app.schemas.checkout import CheckoutRequest, CheckoutResponse
from app.schemas.order import OrderResponse
from app.schemas.payment import PaymentResponse
from app.services.coupon_service import CouponService
from app.services.order_service import persist_order
from app.services.payment_service import record_payment
from app.services.pricing_service import apply_discount, price_order
from app.utils.money import ZERO

logger = structlog.get_logger()


def checkout(db: Session, user: User, request: CheckoutRequest) -> CheckoutResponse:
    """
    Price the cart, apply an optional coupon, create the order, record the
    payment and redeem the coupon in a single transaction.
    """
    priced = price_order(db, request.items)

    discount = ZERO
    coupon_id = None
    coupon_code = None
    if request.coupon_code:
        result = CouponService.validate_coupon(db, user.id, request.coupon_code, priced.subtotal)
        if not result.valid:
            raise CouponRejected(result.message)
        discount = result.discount_amount
        coupon_id = result.coupon_id
        coupon_code = result.code
        priced = apply_discount(priced, discount)

    try:
        order = persist_order(
            db,
            user.id,
            user.email,
            priced,
            notes=request.notes,
            coupon_code=coupon_code,
            commit=False,
        )
        payment = record_payment(
            db,
            order.id,
            request.payment_method,
            user.email,
            transaction_id=request.transaction_id,
            commit=False,
        )
        if coupon_id is not None:
            CouponService.apply_coupon(db, coupon_id, user.id, order.id, discount, commit=False)
        db.commit()
    except HTTPException:
        db.rollback()
        raise

    db.refresh(order)
    db.refresh(payment)
    logger.info(
        "checkout_completed",
        order_id=order.id,
        user_id=user.id,
        coupon_code=coupon_code,
        total=str(order.total),
    )
    return CheckoutResponse(
        order=OrderResponse.model_validate(order),
        payment=PaymentResponse.model_validate(payment),
        coupon_code=coupon_code,
        discount_amount=discount,
    )
