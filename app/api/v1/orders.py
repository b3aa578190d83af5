from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user, require_admin
from app.models.user import User, UserRole
from app.schemas.order import OrderCreate, OrderResponse, OrderSummary
from app.schemas.order_tracking import OrderStatusUpdate
from app.services import order_service
from app.services.order_tracking_service import OrderTrackingService
from app.utils.response import paginated_response, success

router = APIRouter()


@router.post(
    "/",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
    description="""
Creates a PENDING order from explicit product/variant selections.

Process:
1. Resolves every product and variant, rejecting variants of another product
2. Captures unit prices (variant price, else product price)
3. Calculates subtotal, flat shipping, tax and total
4. Stores order, items and the initial status history row in one transaction
""",
    responses={
        201: {"description": "Order created successfully"},
        401: {"description": "Authentication required"},
        404: {"description": "Product or variant not found"},
        409: {"description": "Variant does not belong to product"},
    },
    tags=["Orders"],
)
def create_order(
    order_data: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create order from selections"""
    order = order_service.create_order(db, current_user.id, current_user.email, order_data)
    return success(
        data=OrderResponse.model_validate(order).model_dump(),
        message="Order created successfully",
    )


@router.get("/", response_model=dict)
def get_user_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get user's order history"""
    orders = order_service.get_user_orders(db, current_user.id, skip, limit)
    summaries = [
        OrderSummary(
            id=order.id,
            status=order.status,
            total=order.total,
            item_count=len(order.items),
            order_date=order.order_date,
        ).model_dump()
        for order in orders
    ]
    return paginated_response(
        summaries,
        total=order_service.count_user_orders(db, current_user.id),
        page=skip // limit + 1,
        limit=limit,
    )


@router.get("/{order_id}", response_model=dict)
def get_order_detail(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get order details"""
    order = order_service.get_order_for_user(db, order_id, current_user.id)
    return success(
        data=OrderResponse.model_validate(order).model_dump(),
        message="Order detail retrieved",
    )


@router.put("/{order_id}/cancel", response_model=dict)
def cancel_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel order"""
    order = order_service.cancel_order(db, order_id, current_user.id, current_user.email)
    return success(
        data={"order_id": order.id, "status": order.status.value},
        message="Order cancelled successfully",
    )


# Order Tracking Endpoints

@router.put("/{order_id}/status", response_model=dict)
def update_order_status(
    order_id: int,
    status_update: OrderStatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update order status (admin only)."""
    order = OrderTrackingService.update_order_status(
        db, order_id, status_update, current_user.email
    )
    return success(
        data={"order_id": order.id, "status": order.status.value},
        message="Order status updated",
    )


@router.get("/{order_id}/tracking", response_model=dict)
def get_order_tracking(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get order tracking information."""
    tracking = OrderTrackingService.get_order_tracking(
        db, order_id, current_user.id, current_user.role == UserRole.ADMIN
    )
    return success(data=tracking.model_dump(), message="Order tracking retrieved")
