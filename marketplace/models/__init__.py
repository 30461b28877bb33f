"""MongoDB models using Pydantic"""

from marketplace.models.common import Address, ObjectIdStr
from marketplace.models.product import Product, ProductOption
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.coupon import Coupon, DiscountType, CouponUsageType
from marketplace.models.return_model import ReturnRequest, ReturnItem, ReturnReason, ReturnStatus

__all__ = [
    "Address",
    "ObjectIdStr",
    "Product",
    "ProductOption",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Coupon",
    "DiscountType",
    "CouponUsageType",
    "ReturnRequest",
    "ReturnItem",
    "ReturnReason",
    "ReturnStatus",
]
