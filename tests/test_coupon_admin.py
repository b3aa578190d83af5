from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.exceptions import CouponPolicyViolation, DuplicateCouponCode, EntityNotFound
from app.models.coupon import Coupon, DiscountType
from app.models.user import User, UserRole
from app.schemas.coupon import CouponCreate, CouponUpdate
from app.services.coupon_service import CouponService


def _create_user(db: Session, email: str, role: UserRole = UserRole.CUSTOMER) -> User:
    user = User(email=email, full_name="Coupon Admin Test", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _coupon_payload(**overrides) -> dict:
    start = datetime.utcnow() - timedelta(days=1)
    payload = {
        "code": "WELCOME15",
        "description": "Welcome discount",
        "discount_type": "PERCENTAGE",
        "discount_value": "15",
        "min_purchase_amount": "20.00",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_create_coupon_persists_with_zero_usage(db_session: Session):
    coupon = CouponService.create_coupon(db_session, CouponCreate(**_coupon_payload()))

    assert coupon.id is not None
    assert coupon.usage_count == 0
    assert coupon.per_user_limit == 1
    assert coupon.applicable_product_ids == []


def test_duplicate_code_rejected_even_when_inactive(db_session: Session):
    CouponService.create_coupon(db_session, CouponCreate(**_coupon_payload(is_active=False)))

    with pytest.raises(DuplicateCouponCode) as exc_info:
        CouponService.create_coupon(db_session, CouponCreate(**_coupon_payload()))

    assert exc_info.value.status_code == 409
    assert db_session.query(Coupon).count() == 1


def test_end_date_must_follow_start_date(db_session: Session):
    start = datetime(2024, 1, 1)
    payload = _coupon_payload(start_date=start.isoformat(), end_date=start.isoformat())

    with pytest.raises(CouponPolicyViolation) as exc_info:
        CouponService.create_coupon(db_session, CouponCreate(**payload))

    assert exc_info.value.detail == "End date must be after start date"
    assert db_session.query(Coupon).count() == 0


def test_percentage_above_hundred_rejected(db_session: Session):
    with pytest.raises(CouponPolicyViolation) as exc_info:
        CouponService.create_coupon(db_session, CouponCreate(**_coupon_payload(discount_value="100.01")))

    assert exc_info.value.detail == "Percentage discount cannot exceed 100%"


def test_fixed_amount_above_hundred_allowed(db_session: Session):
    coupon = CouponService.create_coupon(
        db_session,
        CouponCreate(**_coupon_payload(discount_type="FIXED_AMOUNT", discount_value="250.00")),
    )

    assert coupon.discount_type == DiscountType.FIXED_AMOUNT
    assert coupon.discount_value == Decimal("250.00")


def test_update_checks_merged_state(db_session: Session):
    created = CouponService.create_coupon(
        db_session,
        CouponCreate(**_coupon_payload(discount_type="FIXED_AMOUNT", discount_value="150.00")),
    )

    # Switching type alone would leave a 150% discount behind
    with pytest.raises(CouponPolicyViolation):
        CouponService.update_coupon(db_session, created.id, CouponUpdate(discount_type=DiscountType.PERCENTAGE))

    with pytest.raises(CouponPolicyViolation):
        CouponService.update_coupon(
            db_session, created.id, CouponUpdate(end_date=created.start_date - timedelta(hours=1))
        )

    unchanged = CouponService.get_coupon(db_session, created.id)
    assert unchanged.discount_type == DiscountType.FIXED_AMOUNT

    updated = CouponService.update_coupon(
        db_session,
        created.id,
        CouponUpdate(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("20")),
    )
    assert updated.discount_type == DiscountType.PERCENTAGE
    assert updated.discount_value == Decimal("20.00")


def test_missing_coupon_not_found(db_session: Session):
    with pytest.raises(EntityNotFound) as exc_info:
        CouponService.get_coupon(db_session, 999)

    assert exc_info.value.detail == "Coupon not found with id: 999"


def test_lowercase_code_fails_schema(client: TestClient, db_session: Session):
    admin = _create_user(db_session, "admin-schema@example.com", UserRole.ADMIN)

    response = client.post(
        "/api/v1/coupons/admin",
        headers={"X-User-Id": str(admin.id)},
        json=_coupon_payload(code="welcome"),
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_admin_coupon_lifecycle(client: TestClient, db_session: Session):
    admin = _create_user(db_session, "admin@example.com", UserRole.ADMIN)
    headers = {"X-User-Id": str(admin.id)}

    created = client.post("/api/v1/coupons/admin", headers=headers, json=_coupon_payload())
    assert created.status_code == 201
    coupon_id = created.json()["data"]["id"]

    duplicate = client.post("/api/v1/coupons/admin", headers=headers, json=_coupon_payload())
    assert duplicate.status_code == 409
    assert duplicate.json()["success"] is False

    listed = client.get("/api/v1/coupons/admin", headers=headers)
    assert [c["code"] for c in listed.json()["data"]] == ["WELCOME15"]

    deactivated = client.patch(
        f"/api/v1/coupons/admin/{coupon_id}/status",
        headers=headers,
        json={"is_active": False},
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["data"]["is_active"] is False

    updated = client.put(
        f"/api/v1/coupons/admin/{coupon_id}",
        headers=headers,
        json={"description": "Updated"},
    )
    assert updated.json()["data"]["description"] == "Updated"

    deleted = client.delete(f"/api/v1/coupons/admin/{coupon_id}", headers=headers)
    assert deleted.status_code == 200

    missing = client.get(f"/api/v1/coupons/admin/{coupon_id}", headers=headers)
    assert missing.status_code == 404


def test_customer_cannot_manage_coupons(client: TestClient, db_session: Session):
    customer = _create_user(db_session, "customer@example.com")

    response = client.post(
        "/api/v1/coupons/admin",
        headers={"X-User-Id": str(customer.id)},
        json=_coupon_payload(),
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_usage_limit_cannot_drop_below_usage_count(db_session: Session):
    created = CouponService.create_coupon(db_session, CouponCreate(**_coupon_payload(usage_limit=10)))
    coupon = db_session.query(Coupon).filter(Coupon.id == created.id).one()
    coupon.usage_count = 5
    db_session.commit()

    with pytest.raises(CouponPolicyViolation) as exc_info:
        CouponService.update_coupon(db_session, created.id, CouponUpdate(usage_limit=2))

    assert exc_info.value.status_code == 400
    db_session.refresh(coupon)
    assert (coupon.usage_count, coupon.usage_limit) == (5, 10)

    exact = CouponService.update_coupon(db_session, created.id, CouponUpdate(usage_limit=5))
    assert exact.usage_limit == 5

    cleared = CouponService.update_coupon(db_session, created.id, CouponUpdate(usage_limit=None))
    assert cleared.usage_limit is None
