"""Refund computation for return requests"""

from dataclasses import dataclass, field
from typing import Dict, List

from marketplace.core.errors import InvalidReturnSelection
from marketplace.models.order import Order
from marketplace.models.return_model import ReturnItem, ReturnReason


# Whether a reason entitles the customer to a shipping refund.
# Seller-fault reasons refund shipping, buyer-fault reasons never do.
SHIPPING_REFUND_POLICY: Dict[ReturnReason, bool] = {
    ReturnReason.DEFECTIVE_PRODUCT: True,
    ReturnReason.WRONG_DELIVERY: True,
    ReturnReason.PRODUCT_INFO_MISMATCH: True,
    ReturnReason.DELIVERY_DELAY: True,
    ReturnReason.SIMPLE_CHANGE_OF_MIND: False,
    ReturnReason.SIZE_COLOR_MISMATCH: False,
    ReturnReason.OTHER: False,
}


def is_seller_fault(reason: ReturnReason) -> bool:
    return SHIPPING_REFUND_POLICY[reason]


@dataclass
class RefundBreakdown:
    """Amounts refunded for one return request"""
    items: List[ReturnItem] = field(default_factory=list)
    items_refund_amount: int = 0
    shipping_refund_amount: int = 0

    @property
    def total_refund_amount(self) -> int:
        return self.items_refund_amount + self.shipping_refund_amount


def build_return_items(order: Order, selection: Dict[str, int]) -> List[ReturnItem]:
    """
    Validate a selection of order item id -> quantity against the order

    Raises:
        InvalidReturnSelection: On an empty selection, an unknown item, a
            non-positive quantity or more than the remaining quantity
    """
    if not selection:
        raise InvalidReturnSelection("Select at least one item to return")

    return_items = []
    for item_id, quantity in selection.items():
        order_item = order.get_item(item_id)
        if order_item is None:
            raise InvalidReturnSelection(f"Order item not found: {item_id}")

        if quantity <= 0:
            raise InvalidReturnSelection(
                f"Return quantity for '{order_item.name}' must be at least 1"
            )

        remaining = order.remaining_quantity(item_id)
        if quantity > remaining:
            raise InvalidReturnSelection(
                f"Cannot return {quantity} of '{order_item.name}', only {remaining} can still be returned"
            )

        return_items.append(
            ReturnItem(
                order_item_id=item_id,
                product_id=order_item.product_id,
                option_id=order_item.option_id,
                name=order_item.name,
                quantity=quantity,
                unit_price=order_item.unit_price,
                refund_amount=order_item.unit_price * quantity,
            )
        )

    return return_items


def compute_shipping_refund(order: Order, reason: ReturnReason) -> int:
    """Shipping is refunded once per order, and only for seller-fault reasons"""
    if not is_seller_fault(reason):
        return 0
    if order.shipping_refunded:
        return 0
    return order.shipping_fee


def compute_refund(order: Order, selection: Dict[str, int], reason: ReturnReason) -> RefundBreakdown:
    """
    Compute item and shipping refund amounts for a return selection

    Args:
        order: The order being returned
        selection: Order item id -> quantity to return
        reason: Reason category of the return

    Returns:
        RefundBreakdown with the validated return items and amounts
    """
    items = build_return_items(order, selection)
    return RefundBreakdown(
        items=items,
        items_refund_amount=sum(item.refund_amount for item in items),
        shipping_refund_amount=compute_shipping_refund(order, reason),
    )
