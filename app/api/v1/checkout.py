from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.checkout import CheckoutRequest
from app.services.checkout_service import checkout
from app.utils.response import success

router = APIRouter()


@router.post(
    "/",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="""
Creates the order, records the payment and redeems the coupon atomically.

An invalid coupon rejects the whole checkout with the validator's message.
""",
    responses={
        201: {"description": "Order placed"},
        400: {"description": "Coupon rejected or unsupported payment method"},
        404: {"description": "Product or variant not found"},
        409: {"description": "Variant mismatch or coupon already applied"},
    },
    tags=["Checkout"],
)
def place_order(
    request: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = checkout(db, current_user, request)
    return success(data=result.model_dump(), message="Order placed successfully")
