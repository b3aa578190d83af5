from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user, require_admin
from app.models.user import User, UserRole
from app.schemas.payment import PaymentCreate, PaymentResponse, RefundRequest
from app.services import payment_service
from app.services.order_service import get_order_for_user
from app.utils.response import success

router = APIRouter()


@router.get("/methods", response_model=dict)
def get_payment_methods():
    """List payment methods and whether they are enabled."""
    return success(data=payment_service.get_available_payment_methods(), message="Payment methods retrieved")


@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_payment(
    payment_data: PaymentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a payment for one of the current user's pending orders."""
    get_order_for_user(db, payment_data.order_id, current_user.id)
    payment = payment_service.record_payment(
        db,
        payment_data.order_id,
        payment_data.payment_method,
        current_user.email,
        transaction_id=payment_data.transaction_id,
    )
    return success(data=PaymentResponse.model_validate(payment).model_dump(), message="Payment recorded")


@router.get("/{payment_id}", response_model=dict)
def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payment = payment_service.get_payment(db, payment_id)
    if payment.order.user_id != current_user.id and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own payments"
        )
    return success(data=PaymentResponse.model_validate(payment).model_dump(), message="Payment retrieved")


@router.post("/{payment_id}/refund", response_model=dict)
def refund_payment(
    payment_id: int,
    refund_data: RefundRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Refund a completed payment; the order is cancelled (admin only)."""
    payment = payment_service.refund_payment(
        db,
        payment_id,
        current_user.email,
        amount=refund_data.amount,
        reason=refund_data.reason,
    )
    return success(data=PaymentResponse.model_validate(payment).model_dump(), message="Payment refunded")
