"""Return models for product returns and refunds"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum
from marketplace.models.common import ObjectIdStr
from marketplace.models.order import OrderStatus

DETAILED_REASON_MIN_LENGTH = 10
DETAILED_REASON_MAX_LENGTH = 1000


class ReturnReason(str, Enum):
    """Return reason category"""
    DEFECTIVE_PRODUCT = "defective_product"
    WRONG_DELIVERY = "wrong_delivery"
    PRODUCT_INFO_MISMATCH = "product_info_mismatch"
    DELIVERY_DELAY = "delivery_delay"
    SIMPLE_CHANGE_OF_MIND = "simple_change_of_mind"
    SIZE_COLOR_MISMATCH = "size_color_mismatch"
    OTHER = "other"


class ReturnStatus(str, Enum):
    """Return status enumeration"""
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ReturnItem(BaseModel):
    """Return item model"""
    order_item_id: str
    product_id: str
    option_id: Optional[str] = None
    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)
    refund_amount: int = Field(ge=0)

    class Config:
        frozen = True


class ReturnRequest(BaseModel):
    """Return request model"""
    id: Optional[ObjectIdStr] = Field(None, alias="_id")
    return_number: str
    order_id: str
    order_number: str
    user_id: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    status: ReturnStatus = ReturnStatus.REQUESTED
    reason_category: ReturnReason
    detailed_reason: str = Field(min_length=DETAILED_REASON_MIN_LENGTH, max_length=DETAILED_REASON_MAX_LENGTH)
    proof_image_urls: List[str] = []
    items: List[ReturnItem]
    items_refund_amount: int = Field(ge=0)
    shipping_refund_amount: int = Field(default=0, ge=0)
    total_refund_amount: int = Field(ge=0)
    admin_note: Optional[str] = None
    rejection_reason: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    restored_item_ids: List[str] = []
    order_status_at_request: OrderStatus = OrderStatus.DELIVERED
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 0
    pending_action: Optional[str] = None
    claimed_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "return_number": "RET-20261018-1A2B3C4D",
                "order_id": "507f1f77bcf86cd799439011",
                "order_number": "ORD-20261010-9F8E7D6C",
                "user_id": "507f191e810c19729de860ea",
                "status": "requested",
                "reason_category": "defective_product",
                "detailed_reason": "Two tangerines arrived crushed and leaking",
                "items": [
                    {
                        "order_item_id": "65f1c0a2b7e4a1d2c3b4a5f6",
                        "product_id": "507f191e810c19729de860eb",
                        "name": "Jeju Tangerines 3kg",
                        "quantity": 1,
                        "unit_price": 10000,
                        "refund_amount": 10000
                    }
                ],
                "items_refund_amount": 10000,
                "shipping_refund_amount": 3000,
                "total_refund_amount": 13000
            }
        }

    @property
    def returned_quantities(self) -> dict:
        """order item id -> quantity carried by this request"""
        quantities = {}
        for item in self.items:
            quantities[item.order_item_id] = quantities.get(item.order_item_id, 0) + item.quantity
        return quantities
