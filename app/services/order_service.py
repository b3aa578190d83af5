from sqlalchemy import func
from sqlalchemy.orm import Session
from fastapi import HTTPException
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import structlog

from app.core.exceptions import EntityNotFound, InvalidOrderTransition
from app.models.order import Order, OrderItem, OrderStatus
from app.models.user import User
from app.schemas.order import OrderCreate, PricedOrder
from app.services.order_tracking_service import apply_transition, record_status
from app.services.pricing_service import price_order

logger = structlog.get_logger()

CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


def persist_order(
    db: Session,
    user_id: int,
    actor: str,
    priced: PricedOrder,
    notes: Optional[str] = None,
    coupon_code: Optional[str] = None,
    commit: bool = True,
) -> Order:
    """
    Store a priced order with its items and the initial PENDING history row.

    Items carry the unit price captured here; nothing re-reads product prices later.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise EntityNotFound("User", user_id)

    order = Order(
        user_id=user.id,
        order_date=datetime.utcnow(),
        status=OrderStatus.PENDING,
        subtotal=priced.subtotal,
        shipping_cost=priced.shipping_cost,
        tax=priced.tax,
        discount=priced.discount,
        total=priced.total,
        coupon_code=coupon_code,
        notes=notes,
    )
    for line in priced.lines:
        order.items.append(
            OrderItem(
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.product_name,
                variant_name=line.variant_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            )
        )
    record_status(order, OrderStatus.PENDING, actor, "Order created")

    try:
        db.add(order)
        db.flush()
        if commit:
            db.commit()
            db.refresh(order)
    except Exception:
        db.rollback()
        logger.exception("order_create_failed", user_id=user_id)
        raise

    logger.info(
        "order_created",
        order_id=order.id,
        user_id=user_id,
        total=str(order.total),
        item_count=len(priced.lines),
    )
    return order


def create_order(
    db: Session,
    user_id: int,
    actor: str,
    order_data: OrderCreate,
    discount: Optional[Decimal] = None,
    coupon_code: Optional[str] = None,
    commit: bool = True,
) -> Order:
    """Price the requested items and create the order atomically."""
    priced = price_order(db, order_data.items, discount=discount)
    return persist_order(db, user_id, actor, priced, order_data.notes, coupon_code, commit)


def get_user_orders(db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def count_user_orders(db: Session, user_id: int) -> int:
    return db.query(func.count(Order.id)).filter(Order.user_id == user_id).scalar() or 0


def get_order_for_user(db: Session, order_id: int, user_id: int) -> Order:
    order = db.query(Order).filter(
        Order.id == order_id,
        Order.user_id == user_id
    ).first()
    if not order:
        raise EntityNotFound("Order", order_id)
    return order


def cancel_order(db: Session, order_id: int, user_id: int, actor: str) -> Order:
    """Customer cancellation; only PENDING or PROCESSING orders can be cancelled."""
    order = (
        db.query(Order)
        .filter(Order.id == order_id, Order.user_id == user_id)
        .with_for_update()
        .first()
    )
    if not order:
        raise EntityNotFound("Order", order_id)

    if order.status not in CANCELLABLE_STATUSES:
        raise InvalidOrderTransition(
            f"Cannot cancel order with status: {order.status.value}",
            current_status=order.status,
        )

    try:
        apply_transition(order, OrderStatus.CANCELLED, actor, "Order cancelled by customer")
        db.commit()
    except HTTPException:
        db.rollback()
        raise

    db.refresh(order)
    return order
