from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user, require_admin
from app.models.user import User
from app.services.coupon_service import CouponService
from app.schemas.coupon import CouponCreate, CouponUpdate, CouponStatusUpdate, ApplyCouponRequest
from app.utils.response import success

router = APIRouter()


@router.post("/validate", response_model=dict)
def validate_coupon(
    request: ApplyCouponRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Validate and preview coupon discount (authenticated users)."""
    result = CouponService.validate_coupon(
        db, current_user.id, request.code, request.order_amount
    )
    return success(data=result.model_dump(), message=result.message)


@router.get("/available", response_model=dict)
def get_available_coupons(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Coupons the current user can still redeem."""
    coupons = CouponService.get_available_coupons(db, current_user.id)
    return success(data=[c.model_dump() for c in coupons], message="Available coupons retrieved")


# Admin

@router.post("/admin", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_coupon(
    coupon_data: CouponCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a new coupon (admin only)."""
    coupon = CouponService.create_coupon(db, coupon_data)
    return success(data=coupon.model_dump(), message="Coupon created successfully")


@router.get("/admin", response_model=dict)
def list_coupons(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List all coupons (admin only)."""
    coupons = CouponService.list_coupons(db, skip, limit)
    return success(data=[c.model_dump() for c in coupons], message="Coupons retrieved successfully")


@router.get("/admin/{coupon_id}", response_model=dict)
def get_coupon(
    coupon_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Get a coupon by ID (admin only)."""
    coupon = CouponService.get_coupon(db, coupon_id)
    return success(data=coupon.model_dump(), message="Coupon retrieved successfully")


@router.put("/admin/{coupon_id}", response_model=dict)
def update_coupon(
    coupon_id: int,
    coupon_data: CouponUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update a coupon (admin only)."""
    coupon = CouponService.update_coupon(db, coupon_id, coupon_data)
    return success(data=coupon.model_dump(), message="Coupon updated successfully")


@router.patch("/admin/{coupon_id}/status", response_model=dict)
def update_coupon_status(
    coupon_id: int,
    status_update: CouponStatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Activate or deactivate a coupon (admin only)."""
    coupon = CouponService.update_coupon_status(db, coupon_id, status_update.is_active)
    return success(data=coupon.model_dump(), message="Coupon status updated")


@router.delete("/admin/{coupon_id}", response_model=dict)
def delete_coupon(
    coupon_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a coupon (admin only)."""
    CouponService.delete_coupon(db, coupon_id)
    return success(message="Coupon deleted successfully")
