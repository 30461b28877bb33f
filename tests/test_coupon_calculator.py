"""
Coupon discount calculation tests
"""
from datetime import datetime, timedelta

import pytest

from marketplace.core.errors import IneligibleCoupon
from marketplace.models.coupon import Coupon, DiscountType
from marketplace.services.coupon_calculator import calculate_discount, compute_order_totals

NOW = datetime(2026, 10, 18, 12, 0, 0)


def make_coupon(**overrides) -> Coupon:
    data = {
        "code": "TEST1",
        "name": "Test coupon",
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": 5000,
        "min_order_amount": 0,
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=1),
    }
    data.update(overrides)
    return Coupon(**data)


class TestFixedAmount:
    def test_takes_coupon_value(self):
        coupon = make_coupon(min_order_amount=20000)
        assert calculate_discount(coupon, 25000, now=NOW) == 5000

    def test_capped_at_subtotal(self):
        coupon = make_coupon(discount_value=50000)
        assert calculate_discount(coupon, 12000, now=NOW) == 12000


class TestPercentage:
    def test_floors_to_whole_won(self):
        coupon = make_coupon(discount_type=DiscountType.PERCENTAGE, discount_value=15)
        # 15% of 12,345 is 1,851.75
        assert calculate_discount(coupon, 12345, now=NOW) == 1851

    def test_capped_at_max_discount(self):
        coupon = make_coupon(
            discount_type=DiscountType.PERCENTAGE, discount_value=10, max_discount_amount=3000
        )
        assert calculate_discount(coupon, 100000, now=NOW) == 3000

    @pytest.mark.parametrize("subtotal", [0, 1, 999, 25000, 1000000])
    @pytest.mark.parametrize("percent", [1, 50, 100])
    def test_bounds(self, subtotal, percent):
        coupon = make_coupon(
            discount_type=DiscountType.PERCENTAGE, discount_value=percent, max_discount_amount=20000
        )
        discount = calculate_discount(coupon, subtotal, now=NOW)
        assert 0 <= discount <= subtotal
        assert discount <= 20000


class TestEligibility:
    def test_below_minimum(self):
        coupon = make_coupon(min_order_amount=20000)
        with pytest.raises(IneligibleCoupon, match="at least 20,000"):
            calculate_discount(coupon, 19999, now=NOW)

    def test_inactive(self):
        with pytest.raises(IneligibleCoupon, match="no longer active"):
            calculate_discount(make_coupon(is_active=False), 25000, now=NOW)

    def test_not_started(self):
        coupon = make_coupon(start_date=NOW + timedelta(hours=1))
        with pytest.raises(IneligibleCoupon, match="not valid yet"):
            calculate_discount(coupon, 25000, now=NOW)

    def test_expired(self):
        coupon = make_coupon(end_date=NOW - timedelta(seconds=1))
        with pytest.raises(IneligibleCoupon, match="expired"):
            calculate_discount(coupon, 25000, now=NOW)

    def test_fully_redeemed(self):
        coupon = make_coupon(total_quantity=10, used_quantity=10)
        with pytest.raises(IneligibleCoupon, match="fully redeemed"):
            calculate_discount(coupon, 25000, now=NOW)

    def test_unlimited_quantity(self):
        coupon = make_coupon(total_quantity=None, used_quantity=5000)
        assert calculate_discount(coupon, 25000, now=NOW) == 5000

    def test_category_restriction(self):
        coupon = make_coupon(applicable_category="fruit")
        assert calculate_discount(coupon, 25000, now=NOW, categories=["fruit", "vegetable"]) == 5000
        with pytest.raises(IneligibleCoupon, match="'fruit' category"):
            calculate_discount(coupon, 25000, now=NOW, categories=["vegetable"])


def test_code_is_uppercased():
    assert make_coupon(code="welcome5000").code == "WELCOME5000"


class TestOrderTotals:
    def test_final_amount(self):
        totals = compute_order_totals(25000, 5000, 3000)
        assert totals["final_amount"] == 23000

    def test_discount_never_exceeds_subtotal(self):
        totals = compute_order_totals(4000, 5000, 3000)
        assert totals["coupon_discount_amount"] == 4000
        assert totals["final_amount"] == 3000

    @pytest.mark.parametrize("subtotal,discount,shipping", [(0, 0, 0), (25000, 0, 3000), (10000, 10000, 0)])
    def test_final_amount_never_negative(self, subtotal, discount, shipping):
        totals = compute_order_totals(subtotal, discount, shipping)
        assert totals["final_amount"] == (
            totals["subtotal"] - totals["coupon_discount_amount"] + totals["shipping_fee"]
        )
        assert totals["final_amount"] >= 0
