"""Order schemas"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from marketplace.models.order import Order, OrderStatus
from marketplace.models.common import Address


class OrderItemInput(BaseModel):
    """Input schema for an order line"""
    product_id: str
    option_id: Optional[str] = None
    quantity: int = Field(ge=1, le=99)

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "507f1f77bcf86cd799439011",
                "option_id": None,
                "quantity": 2
            }
        }


class OrderCreate(BaseModel):
    """Schema for placing an order"""
    items: List[OrderItemInput] = Field(min_length=1)
    coupon_code: Optional[str] = None
    shipping_address: Optional[Address] = None
    notes: Optional[str] = Field(None, max_length=500)

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"product_id": "507f1f77bcf86cd799439011", "quantity": 2},
                    {"product_id": "507f191e810c19729de860ea", "quantity": 1}
                ],
                "coupon_code": "WELCOME5000",
                "shipping_address": {
                    "recipient": "Kim Minji",
                    "address_line1": "12 Teheran-ro",
                    "city": "Seoul",
                    "postal_code": "06234",
                    "country": "KR"
                },
                "notes": "Leave at the door"
            }
        }


class OrderItemResponse(BaseModel):
    """Response schema for order item"""
    item_id: str
    product_id: str
    option_id: Optional[str] = None
    name: str
    option_name: Optional[str] = None
    quantity: int
    unit_price: int
    subtotal: int


class OrderResponse(BaseModel):
    """Response schema for order"""
    id: str
    order_number: str
    user_id: str
    items: List[OrderItemResponse]
    subtotal: int
    coupon_code: Optional[str] = None
    coupon_discount_amount: int
    shipping_fee: int
    final_amount: int
    status: OrderStatus
    payment_intent_id: Optional[str] = None
    shipping_address: Optional[Address] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    returned_quantities: Dict[str, int] = {}
    shipping_refunded: bool = False
    cancellation_reason: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "id": "507f1f77bcf86cd799439011",
                "order_number": "ORD-20261010-9F8E7D6C",
                "user_id": "507f191e810c19729de860ea",
                "items": [
                    {
                        "item_id": "65f1c0a2b7e4a1d2c3b4a5f6",
                        "product_id": "507f191e810c19729de860eb",
                        "name": "Jeju Tangerines 3kg",
                        "quantity": 2,
                        "unit_price": 10000,
                        "subtotal": 20000
                    }
                ],
                "subtotal": 25000,
                "coupon_code": "WELCOME5000",
                "coupon_discount_amount": 5000,
                "shipping_fee": 3000,
                "final_amount": 23000,
                "status": "pending_payment",
                "created_at": "2026-10-10T00:00:00",
                "updated_at": "2026-10-10T00:00:00"
            }
        }

    @classmethod
    def from_model(cls, order: Order) -> "OrderResponse":
        return cls(
            **order.model_dump(exclude={"items", "id", "shipping_address"}),
            id=order.id,
            items=[OrderItemResponse(**item.model_dump()) for item in order.items],
            shipping_address=order.shipping_address,
        )


class PaymentConfirmRequest(BaseModel):
    """Schema for confirming payment of an order"""
    payment_intent_id: str

    class Config:
        json_schema_extra = {
            "example": {
                "payment_intent_id": "pi_3PmXyZ2eZvKYlo2C0abc1234"
            }
        }


class OrderCancelRequest(BaseModel):
    """Schema for cancelling an order"""
    reason: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    """Schema for admin fulfillment updates"""
    status: OrderStatus

    class Config:
        json_schema_extra = {
            "example": {
                "status": "shipped"
            }
        }
