from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.exceptions import CouponRejected
from app.models.coupon import Coupon, DiscountType
from app.models.coupon_usage import CouponUsage
from app.models.order import Order, OrderStatus
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.product import Product, ProductVariant
from app.models.user import User
from app.schemas.checkout import CheckoutRequest
from app.schemas.order import OrderItemRequest
from app.services.checkout_service import checkout


def _create_user(db: Session, email: str) -> User:
    user = User(email=email, full_name="Checkout Test User")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _create_variant(db: Session, price: str = "50.00") -> ProductVariant:
    product = Product(name="Brass Lamp", price=Decimal(price), is_active=True)
    db.add(product)
    db.flush()
    variant = ProductVariant(product_id=product.id, name="Standard", sku=f"LAMP-{product.id}")
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _create_coupon(db: Session, **overrides) -> Coupon:
    now = datetime.utcnow()
    values = dict(
        code="SAVE10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10.00"),
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=1),
    )
    values.update(overrides)
    coupon = Coupon(**values)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def _request(variant: ProductVariant, **overrides) -> CheckoutRequest:
    values = dict(
        items=[OrderItemRequest(product_id=variant.product_id, variant_id=variant.id, quantity=2)],
        payment_method=PaymentMethod.CREDIT_CARD,
        transaction_id="ch_checkout",
    )
    values.update(overrides)
    return CheckoutRequest(**values)


def test_checkout_with_coupon(db_session: Session):
    user = _create_user(db_session, "checkout@example.com")
    variant = _create_variant(db_session)
    coupon = _create_coupon(db_session)

    result = checkout(db_session, user, _request(variant, coupon_code="SAVE10"))

    # subtotal 100.00, shipping 10.00, tax 14.00, discount 10.00
    assert result.order.total == Decimal("114.00")
    assert result.order.discount == Decimal("10.00")
    assert result.order.coupon_code == "SAVE10"
    assert result.order.status == OrderStatus.PROCESSING
    assert result.payment.status == PaymentStatus.COMPLETED
    assert result.payment.amount == Decimal("114.00")
    assert result.discount_amount == Decimal("10.00")

    db_session.refresh(coupon)
    assert coupon.usage_count == 1
    usage = db_session.query(CouponUsage).one()
    assert (usage.order_id, usage.discount_amount) == (result.order.id, Decimal("10.00"))


def test_checkout_without_coupon(db_session: Session):
    user = _create_user(db_session, "plain@example.com")
    variant = _create_variant(db_session)

    result = checkout(db_session, user, _request(variant, payment_method=PaymentMethod.CASH_ON_DELIVERY))

    assert result.order.total == Decimal("124.00")
    assert result.coupon_code is None
    assert result.payment.status == PaymentStatus.PENDING
    assert db_session.query(CouponUsage).count() == 0


def test_rejected_coupon_aborts_checkout(db_session: Session):
    user = _create_user(db_session, "rejected@example.com")
    variant = _create_variant(db_session)
    _create_coupon(db_session, min_purchase_amount=Decimal("500.00"))

    with pytest.raises(CouponRejected) as exc_info:
        checkout(db_session, user, _request(variant, coupon_code="SAVE10"))

    assert exc_info.value.detail == "Minimum purchase amount of $500.00 required"
    assert db_session.query(Order).count() == 0


def test_failed_payment_leaves_no_order_or_usage(db_session: Session):
    user = _create_user(db_session, "no-txn-checkout@example.com")
    variant = _create_variant(db_session)
    coupon = _create_coupon(db_session)

    with pytest.raises(HTTPException) as exc_info:
        checkout(db_session, user, _request(variant, coupon_code="SAVE10", transaction_id=None))

    assert exc_info.value.status_code == 400

    assert db_session.query(Order).count() == 0
    assert db_session.query(Payment).count() == 0
    assert db_session.query(CouponUsage).count() == 0
    db_session.refresh(coupon)
    assert coupon.usage_count == 0


def test_per_user_limit_blocks_second_checkout(client: TestClient, db_session: Session):
    user = _create_user(db_session, "api-checkout@example.com")
    variant = _create_variant(db_session)
    _create_coupon(db_session, per_user_limit=1)
    body = {
        "items": [{"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2}],
        "coupon_code": "SAVE10",
        "payment_method": "CREDIT_CARD",
        "transaction_id": "ch_first",
    }

    first = client.post("/api/v1/checkout/", headers={"X-User-Id": str(user.id)}, json=body)
    assert first.status_code == 201
    assert float(first.json()["data"]["order"]["total"]) == 114.0

    body["transaction_id"] = "ch_second"
    second = client.post("/api/v1/checkout/", headers={"X-User-Id": str(user.id)}, json=body)
    assert second.status_code == 400
    assert second.json()["message"] == "Per-user usage limit reached for this coupon"
    assert db_session.query(Order).count() == 1
