from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional
import structlog

from app.core.exceptions import EntityNotFound, InvalidOrderTransition
from app.models.order import Order, OrderStatus
from app.models.order_status_history import OrderStatusHistory
from app.schemas.order_tracking import OrderStatusUpdate, OrderTrackingResponse, OrderStatusHistoryResponse

logger = structlog.get_logger()

SYSTEM_ACTOR = "system"

# Happy path is forward-only; cancellation only before shipping.
# REFUNDED and refund-driven cancellation are reached through payments, not here.
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def record_status(
    order: Order,
    new_status: OrderStatus,
    actor: str,
    notes: Optional[str] = None,
    old_status: Optional[OrderStatus] = None,
) -> OrderStatusHistory:
    """Append one history row to the order. Rows are never edited afterwards."""
    entry = OrderStatusHistory(
        old_status=old_status.value if old_status else None,
        new_status=new_status.value,
        created_by=actor or SYSTEM_ACTOR,
        notes=notes,
        created_at=datetime.utcnow(),
    )
    order.status_history.append(entry)
    return entry


def apply_transition(
    order: Order,
    new_status: OrderStatus,
    actor: str,
    notes: Optional[str] = None,
) -> OrderStatusHistory:
    """Move an order along the state machine, or raise leaving it untouched."""
    current = order.status
    if not can_transition(current, new_status):
        raise InvalidOrderTransition(
            f"Cannot change order status from {current.value} to {new_status.value}",
            current_status=current,
        )

    order.status = new_status
    entry = record_status(order, new_status, actor, notes, old_status=current)
    logger.info(
        "order_status_changed",
        order_id=order.id,
        old_status=current.value,
        new_status=new_status.value,
        actor=actor,
    )
    return entry


def force_status(order: Order, new_status: OrderStatus, actor: str, notes: Optional[str] = None) -> OrderStatusHistory:
    """Set a status outside the transition table (refund-driven cancellation)."""
    previous = order.status
    order.status = new_status
    entry = record_status(order, new_status, actor, notes, old_status=previous)
    logger.warning(
        "order_status_forced",
        order_id=order.id,
        old_status=previous.value,
        new_status=new_status.value,
        actor=actor,
    )
    return entry


def _history_responses(order: Order) -> List[OrderStatusHistoryResponse]:
    return [OrderStatusHistoryResponse.model_validate(h) for h in order.status_history]


class OrderTrackingService:

    @staticmethod
    def transition_order(
        db: Session,
        order_id: int,
        new_status: OrderStatus,
        actor: str,
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> Order:
        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise EntityNotFound("Order", order_id)

        try:
            apply_transition(order, new_status, actor, notes)
            if commit:
                db.commit()
                db.refresh(order)
            else:
                db.flush()
        except HTTPException:
            db.rollback()
            raise
        return order

    @staticmethod
    def update_order_status(
        db: Session,
        order_id: int,
        status_update: OrderStatusUpdate,
        actor: str,
    ) -> Order:
        """Update order status with history tracking. Admin only."""
        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise EntityNotFound("Order", order_id)

        try:
            apply_transition(order, status_update.status, actor, status_update.notes)
            if status_update.tracking_number:
                order.tracking_number = status_update.tracking_number
            db.commit()
        except HTTPException:
            db.rollback()
            raise

        db.refresh(order)
        return order

    @staticmethod
    def get_order_tracking(db: Session, order_id: int, user_id: int, is_admin: bool = False) -> OrderTrackingResponse:
        """Get order tracking information. Users can only see their own orders, admins can see all."""
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise EntityNotFound("Order", order_id)

        if order.user_id != user_id and not is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only track your own orders"
            )

        return OrderTrackingResponse(
            order_id=order.id,
            current_status=order.status.value,
            tracking_number=order.tracking_number,
            status_history=_history_responses(order),
        )
