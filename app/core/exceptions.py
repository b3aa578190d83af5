from fastapi import HTTPException, status


class EntityNotFound(HTTPException):
    def __init__(self, entity: str, entity_id=None):
        detail = f"{entity} not found"
        if entity_id is not None:
            detail = f"{entity} not found with id: {entity_id}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )
        self.entity = entity


class DuplicateCouponCode(HTTPException):
    def __init__(self, code: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Coupon with code {code} already exists"
        )


class CouponPolicyViolation(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class CouponRejected(HTTPException):
    """A coupon failed validation while a caller required it to be valid."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class CouponAlreadyApplied(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Coupon already applied to this order"
        )


class CouponUsageLimitReached(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Coupon usage limit reached"
        )


class VariantProductMismatch(HTTPException):
    def __init__(self, variant_id: int, product_id: int):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Variant {variant_id} does not belong to product {product_id}"
        )


class InvalidOrderTransition(HTTPException):
    def __init__(self, detail: str, current_status):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )
        self.current_status = current_status


class InvalidPaymentState(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class InvalidCredentials(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )


class InvalidPricing(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )
