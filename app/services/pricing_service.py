from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import EntityNotFound, InvalidPricing, VariantProductMismatch
from app.models.product import Product, ProductVariant
from app.schemas.order import OrderItemRequest, OrderPricing, PricedLine, PricedOrder
from app.utils.money import ZERO, to_money


def resolve_unit_price(product: Product, variant: ProductVariant) -> Decimal:
    """Variant price when the variant defines one, else the parent product price."""
    price = variant.price if variant.price is not None else product.price
    return to_money(price)


def calculate_totals(
    subtotal: Decimal,
    shipping_cost: Decimal,
    tax_rate: Decimal,
    discount: Decimal = ZERO,
) -> OrderPricing:
    """Tax, discount and total for a subtotal; total = subtotal + shipping + tax - discount."""
    subtotal = to_money(subtotal)
    shipping_cost = to_money(shipping_cost)
    discount = to_money(discount)

    if shipping_cost < 0:
        raise InvalidPricing("Shipping cost cannot be negative")
    if discount < 0:
        raise InvalidPricing("Discount cannot be negative")
    if discount > subtotal:
        raise InvalidPricing("Discount cannot exceed order subtotal")

    tax = to_money(subtotal * Decimal(tax_rate))
    total = subtotal + shipping_cost + tax - discount

    return OrderPricing(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax=tax,
        discount=discount,
        total=total,
    )


def apply_discount(priced: PricedOrder, discount: Decimal, tax_rate: Optional[Decimal] = None) -> PricedOrder:
    """Re-total an already priced order with an accepted coupon discount."""
    totals = calculate_totals(
        priced.subtotal,
        priced.shipping_cost,
        settings.TAX_RATE if tax_rate is None else tax_rate,
        discount,
    )
    return PricedOrder(lines=priced.lines, **totals.model_dump())


def price_order(
    db: Session,
    selections: Iterable[OrderItemRequest],
    shipping_cost: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
    discount: Optional[Decimal] = None,
) -> PricedOrder:
    """
    Price a list of product/variant/quantity selections.

    Fails as a whole when a product or variant is missing, or when a variant
    does not belong to the product it was selected with. The discount is
    whatever the caller already accepted from a validated coupon.
    """
    lines = []
    subtotal = ZERO

    for selection in selections:
        product = db.query(Product).filter(Product.id == selection.product_id).first()
        if not product:
            raise EntityNotFound("Product", selection.product_id)

        variant = db.query(ProductVariant).filter(ProductVariant.id == selection.variant_id).first()
        if not variant:
            raise EntityNotFound("Variant", selection.variant_id)

        if variant.product_id != product.id:
            raise VariantProductMismatch(variant.id, product.id)

        unit_price = resolve_unit_price(product, variant)
        total_price = unit_price * selection.quantity
        subtotal += total_price

        lines.append(
            PricedLine(
                product_id=product.id,
                variant_id=variant.id,
                product_name=product.name,
                variant_name=variant.name,
                quantity=selection.quantity,
                unit_price=unit_price,
                total_price=total_price,
            )
        )

    totals = calculate_totals(
        subtotal,
        settings.SHIPPING_FLAT_RATE if shipping_cost is None else shipping_cost,
        settings.TAX_RATE if tax_rate is None else tax_rate,
        ZERO if discount is None else discount,
    )
    return PricedOrder(lines=lines, **totals.model_dump())
