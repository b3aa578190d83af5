import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.exceptions import EntityNotFound, InvalidPaymentState
from app.models.order import Order, OrderStatus
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.services.order_tracking_service import apply_transition, force_status
from app.utils.money import to_money

logger = logging.getLogger(__name__)

GATEWAY_METHODS = {PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD}
SUPPORTED_METHODS = GATEWAY_METHODS | {PaymentMethod.CASH_ON_DELIVERY}

PAYMENT_METHODS = [
    {"code": PaymentMethod.CREDIT_CARD.value, "name": "Credit Card", "enabled": True},
    {"code": PaymentMethod.DEBIT_CARD.value, "name": "Debit Card", "enabled": True},
    {"code": PaymentMethod.PAYPAL.value, "name": "PayPal", "enabled": False},
    {"code": PaymentMethod.BANK_TRANSFER.value, "name": "Bank Transfer", "enabled": False},
    {"code": PaymentMethod.CASH_ON_DELIVERY.value, "name": "Cash on Delivery", "enabled": True},
]


def get_available_payment_methods() -> List[dict]:
    return [dict(method) for method in PAYMENT_METHODS]


def get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise EntityNotFound("Payment", payment_id)
    return payment


def record_payment(
    db: Session,
    order_id: int,
    payment_method: PaymentMethod,
    actor: str,
    transaction_id: Optional[str] = None,
    commit: bool = True,
) -> Payment:
    """
    Record the outcome of a payment for a pending order.

    Card charges are settled by the gateway before this is called and are
    stored COMPLETED under the gateway's transaction id. Cash on delivery is
    stored PENDING. Either way the order moves on to PROCESSING.
    """
    try:
        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise EntityNotFound("Order", order_id)

        if payment_method not in SUPPORTED_METHODS:
            raise HTTPException(status_code=400, detail=f"Unsupported payment method: {payment_method.value}")

        settled = db.query(Payment).filter(
            Payment.order_id == order.id,
            Payment.status == PaymentStatus.COMPLETED,
        ).first()
        if settled:
            raise InvalidPaymentState("Payment already processed")

        payment = Payment(
            order_id=order.id,
            payment_method=payment_method,
            amount=to_money(order.total),
            payment_date=datetime.utcnow(),
        )
        if payment_method in GATEWAY_METHODS:
            if not transaction_id:
                raise HTTPException(status_code=400, detail="Gateway transaction id is required for card payments")
            payment.transaction_id = transaction_id
            payment.status = PaymentStatus.COMPLETED
        else:
            payment.transaction_id = f"COD-{order.id}-{int(time.time() * 1000)}"
            payment.status = PaymentStatus.PENDING

        apply_transition(order, OrderStatus.PROCESSING, actor, "Payment received")
        db.add(payment)
        db.flush()

        if commit:
            db.commit()
            db.refresh(payment)

        logger.info(
            "payment_recorded order_id=%s payment_id=%s method=%s status=%s",
            order.id,
            payment.id,
            payment_method.value,
            payment.status.value,
        )
        return payment
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("payment_failed order_id=%s", order_id)
        raise


def refund_payment(
    db: Session,
    payment_id: int,
    actor: str,
    amount: Optional[Decimal] = None,
    reason: Optional[str] = None,
) -> Payment:
    """
    Refund a completed payment.

    A refund always cancels the owning order, whatever state it is in.
    """
    try:
        payment = db.query(Payment).filter(Payment.id == payment_id).with_for_update().first()
        if not payment:
            raise EntityNotFound("Payment", payment_id)

        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidPaymentState("Only completed payments can be refunded")

        refund_amount = to_money(amount) if amount is not None else to_money(payment.amount)
        if refund_amount > payment.amount:
            raise HTTPException(status_code=400, detail="Refund amount cannot exceed payment amount")

        payment.status = PaymentStatus.REFUNDED
        payment.refunded_amount = refund_amount
        payment.refund_reason = reason

        order = payment.order
        force_status(order, OrderStatus.CANCELLED, actor, "Order cancelled due to refund")

        db.commit()
        db.refresh(payment)

        logger.info(
            "payment_refunded payment_id=%s order_id=%s amount=%s",
            payment.id,
            order.id,
            refund_amount,
        )
        return payment
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("refund_failed payment_id=%s", payment_id)
        raise
