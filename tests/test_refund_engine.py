"""
Refund computation tests
"""
import pytest

from marketplace.core.errors import InvalidReturnSelection, ValidationError
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.return_model import ReturnReason
from marketplace.services.refund_engine import SHIPPING_REFUND_POLICY, compute_refund


def make_order(**overrides) -> Order:
    data = {
        "order_number": "ORD-20261001-0000000A",
        "user_id": "user-1",
        "items": [
            OrderItem(item_id="line-a", product_id="p-a", name="Jeju Tangerines 3kg",
                      quantity=2, unit_price=10000, subtotal=20000),
            OrderItem(item_id="line-b", product_id="p-b", name="Pohang Spinach 500g",
                      quantity=1, unit_price=5000, subtotal=5000),
        ],
        "subtotal": 25000,
        "shipping_fee": 3000,
        "final_amount": 28000,
        "status": OrderStatus.DELIVERED,
    }
    data.update(overrides)
    return Order(**data)


def test_defective_item_refunds_shipping():
    breakdown = compute_refund(make_order(), {"line-a": 1}, ReturnReason.DEFECTIVE_PRODUCT)
    assert breakdown.items_refund_amount == 10000
    assert breakdown.shipping_refund_amount == 3000
    assert breakdown.total_refund_amount == 13000
    assert [(item.order_item_id, item.quantity, item.refund_amount) for item in breakdown.items] == [
        ("line-a", 1, 10000)
    ]


@pytest.mark.parametrize("reason", [
    ReturnReason.SIMPLE_CHANGE_OF_MIND,
    ReturnReason.SIZE_COLOR_MISMATCH,
    ReturnReason.OTHER,
])
def test_buyer_fault_never_refunds_shipping(reason):
    breakdown = compute_refund(make_order(), {"line-a": 2, "line-b": 1}, reason)
    assert breakdown.items_refund_amount == 25000
    assert breakdown.shipping_refund_amount == 0


def test_policy_covers_every_reason():
    assert set(SHIPPING_REFUND_POLICY) == set(ReturnReason)
    seller_fault = {reason for reason, refunds in SHIPPING_REFUND_POLICY.items() if refunds}
    assert seller_fault == {
        ReturnReason.DEFECTIVE_PRODUCT,
        ReturnReason.WRONG_DELIVERY,
        ReturnReason.PRODUCT_INFO_MISMATCH,
        ReturnReason.DELIVERY_DELAY,
    }


def test_shipping_refunded_once_per_order():
    order = make_order(shipping_refunded=True, returned_quantities={"line-a": 1})
    breakdown = compute_refund(order, {"line-a": 1}, ReturnReason.WRONG_DELIVERY)
    assert breakdown.shipping_refund_amount == 0
    assert breakdown.total_refund_amount == 10000


def test_uses_price_snapshot_not_current_price():
    order = make_order()
    breakdown = compute_refund(order, {"line-b": 1}, ReturnReason.OTHER)
    assert breakdown.items[0].unit_price == 5000


class TestSelection:
    def test_empty(self):
        with pytest.raises(InvalidReturnSelection, match="at least one item"):
            compute_refund(make_order(), {}, ReturnReason.OTHER)

    def test_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            compute_refund(make_order(), {}, ReturnReason.OTHER)

    def test_unknown_item(self):
        with pytest.raises(InvalidReturnSelection, match="not found"):
            compute_refund(make_order(), {"line-z": 1}, ReturnReason.OTHER)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, quantity):
        with pytest.raises(InvalidReturnSelection, match="at least 1"):
            compute_refund(make_order(), {"line-a": quantity}, ReturnReason.OTHER)

    def test_more_than_ordered(self):
        with pytest.raises(InvalidReturnSelection, match="only 2 can still be returned"):
            compute_refund(make_order(), {"line-a": 3}, ReturnReason.OTHER)

    def test_more_than_remaining(self):
        order = make_order(returned_quantities={"line-a": 1})
        with pytest.raises(InvalidReturnSelection, match="only 1 can still be returned"):
            compute_refund(order, {"line-a": 2}, ReturnReason.OTHER)
