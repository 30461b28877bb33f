"""Order models"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum
from marketplace.models.common import Address, ObjectIdStr


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    PAID = "paid"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURN_REQUESTED = "return_requested"
    RETURN_APPROVED = "return_approved"
    RETURN_COMPLETED = "return_completed"
    PARTIALLY_RETURNED = "partially_returned"


class OrderItem(BaseModel):
    """Order line; unit_price is the price snapshot taken at purchase time"""
    item_id: str
    product_id: str
    option_id: Optional[str] = None
    name: str
    option_name: Optional[str] = None
    category: Optional[str] = None
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)
    subtotal: int = Field(ge=0)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "item_id": "65f1c0a2b7e4a1d2c3b4a5f6",
                "product_id": "507f1f77bcf86cd799439011",
                "option_id": None,
                "name": "Jeju Tangerines 3kg",
                "category": "fruit",
                "quantity": 2,
                "unit_price": 10000,
                "subtotal": 20000
            }
        }


class Order(BaseModel):
    """Order model"""
    id: Optional[ObjectIdStr] = Field(None, alias="_id")
    order_number: str
    user_id: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    items: List[OrderItem]
    subtotal: int = Field(ge=0)
    coupon_code: Optional[str] = None
    coupon_discount_amount: int = Field(default=0, ge=0)
    shipping_fee: int = Field(default=0, ge=0)
    final_amount: int = Field(ge=0)
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    payment_intent_id: Optional[str] = None
    shipping_address: Optional[Address] = None
    notes: Optional[str] = None
    returned_quantities: Dict[str, int] = {}
    shipping_refunded: bool = False
    shipping_refund_return_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 0
    # Set while a refunding action (cancellation) owns the order
    pending_action: Optional[str] = None
    claimed_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    def get_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def remaining_quantity(self, item_id: str) -> int:
        """Quantity of a line that has not been returned yet"""
        item = self.get_item(item_id)
        if item is None:
            return 0
        return item.quantity - self.returned_quantities.get(item_id, 0)

    def is_fully_returned(self, additional: Optional[Dict[str, int]] = None) -> bool:
        """True when every line would be returned in full after `additional`"""
        additional = additional or {}
        for item in self.items:
            returned = self.returned_quantities.get(item.item_id, 0) + additional.get(item.item_id, 0)
            if returned < item.quantity:
                return False
        return True
