"""Coupon discount calculation

Pure functions, no database access. Redemption (the used_quantity counter)
lives in marketplace.services.coupons.
"""

from datetime import datetime
from typing import Iterable, Optional

from marketplace.core.errors import IneligibleCoupon
from marketplace.models.coupon import Coupon, DiscountType


def check_coupon_usable(
    coupon: Coupon,
    order_subtotal: int,
    now: Optional[datetime] = None,
    categories: Optional[Iterable[str]] = None,
) -> None:
    """
    Raise IneligibleCoupon when the coupon cannot be applied to this order

    Args:
        coupon: Coupon definition
        order_subtotal: Sum of item price x quantity
        now: Evaluation time (defaults to utcnow)
        categories: Categories of the ordered items, checked against the
            coupon's category restriction when given
    """
    now = now or datetime.utcnow()

    if not coupon.is_active:
        raise IneligibleCoupon("This coupon is no longer active")

    if now < coupon.start_date:
        raise IneligibleCoupon("This coupon is not valid yet")

    if now > coupon.end_date:
        raise IneligibleCoupon("This coupon has expired")

    if not coupon.has_stock:
        raise IneligibleCoupon("This coupon has been fully redeemed")

    if order_subtotal < coupon.min_order_amount:
        raise IneligibleCoupon(
            f"Orders of at least {coupon.min_order_amount:,} are required for this coupon"
        )

    if coupon.applicable_category and categories is not None:
        if coupon.applicable_category not in set(categories):
            raise IneligibleCoupon(
                f"This coupon only applies to the '{coupon.applicable_category}' category"
            )


def calculate_discount(
    coupon: Coupon,
    order_subtotal: int,
    now: Optional[datetime] = None,
    categories: Optional[Iterable[str]] = None,
) -> int:
    """
    Compute the discount a coupon grants on an order subtotal

    FIXED_AMOUNT takes the coupon value, PERCENTAGE takes a share of the
    subtotal capped at max_discount_amount. Both are capped at the subtotal,
    so the result is always between 0 and order_subtotal.

    Raises:
        IneligibleCoupon: If the coupon cannot be applied
    """
    check_coupon_usable(coupon, order_subtotal, now=now, categories=categories)

    if coupon.discount_type == DiscountType.FIXED_AMOUNT:
        discount = coupon.discount_value
    else:
        discount = order_subtotal * coupon.discount_value // 100
        if coupon.max_discount_amount is not None:
            discount = min(discount, coupon.max_discount_amount)

    return max(0, min(discount, order_subtotal))


def compute_order_totals(subtotal: int, coupon_discount: int, shipping_fee: int) -> dict:
    """
    Order amounts: final = subtotal - discount + shipping

    The discount is capped at the subtotal so the final amount never goes
    negative.
    """
    discount = max(0, min(coupon_discount, subtotal))
    return {
        "subtotal": subtotal,
        "coupon_discount_amount": discount,
        "shipping_fee": shipping_fee,
        "final_amount": subtotal - discount + shipping_fee,
    }
