"""Return schemas for requests and responses"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from marketplace.models.order import OrderStatus
from marketplace.models.return_model import ReturnReason, ReturnStatus, ReturnRequest


class ReturnCreate(BaseModel):
    """Schema for submitting a return"""
    order_id: str
    reason_category: ReturnReason
    detailed_reason: str = Field(min_length=10, max_length=1000)
    items: Dict[str, int] = Field(description="Order item id -> quantity to return")
    proof_image_urls: List[str] = []

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "507f1f77bcf86cd799439011",
                "reason_category": "defective_product",
                "detailed_reason": "Two tangerines arrived crushed and leaking",
                "items": {"65f1c0a2b7e4a1d2c3b4a5f6": 1},
                "proof_image_urls": ["https://cdn.example.com/returns/crushed.jpg"]
            }
        }


class RefundPreviewRequest(BaseModel):
    """Schema for previewing a refund before submitting"""
    order_id: str
    reason_category: ReturnReason
    items: Dict[str, int]


class ReturnItemResponse(BaseModel):
    """Response schema for return item"""
    order_item_id: str
    product_id: str
    option_id: Optional[str] = None
    name: str
    quantity: int
    unit_price: int
    refund_amount: int


class ReturnResponse(BaseModel):
    """Response schema for return"""
    id: str
    return_number: str
    order_id: str
    order_number: str
    user_id: str
    customer_name: Optional[str] = None
    status: ReturnStatus
    reason_category: ReturnReason
    detailed_reason: str
    proof_image_urls: List[str] = []
    items: List[ReturnItemResponse]
    items_refund_amount: int
    shipping_refund_amount: int
    total_refund_amount: int
    admin_note: Optional[str] = None
    rejection_reason: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    requested_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, ret: ReturnRequest) -> "ReturnResponse":
        return cls(
            **ret.model_dump(exclude={"items", "id"}),
            id=ret.id,
            items=[ReturnItemResponse(**item.model_dump()) for item in ret.items],
        )


class ReturnApproveRequest(BaseModel):
    """Schema for approving a return"""
    admin_note: Optional[str] = Field(None, max_length=1000)


class ReturnRejectRequest(BaseModel):
    """Schema for rejecting a return"""
    rejection_reason: str = Field(max_length=1000)

    class Config:
        json_schema_extra = {
            "example": {
                "rejection_reason": "Photos show the produce was stored unrefrigerated after delivery"
            }
        }


class EligibilityResponse(BaseModel):
    """Response schema for a return eligibility check"""
    order_id: str
    order_status: OrderStatus
    eligible: bool
    reason: str
    delivered_at: Optional[datetime] = None
    return_deadline: Optional[datetime] = None


class RefundPreviewResponse(BaseModel):
    """Response schema for a refund preview"""
    order_id: str
    reason_category: ReturnReason
    items: List[ReturnItemResponse]
    items_refund_amount: int
    shipping_refund_amount: int
    total_refund_amount: int

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "507f1f77bcf86cd799439011",
                "reason_category": "defective_product",
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


class PendingCountResponse(BaseModel):
    """Number of returns waiting for review"""
    success: bool = True
    pending_count: int
