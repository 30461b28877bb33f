"""Coupon schemas"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from marketplace.models.coupon import Coupon, DiscountType, CouponUsageType


class CouponCreate(BaseModel):
    """Schema for creating a coupon"""
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(gt=0)
    min_order_amount: int = Field(default=0, ge=0)
    max_discount_amount: Optional[int] = Field(None, ge=0)
    start_date: datetime
    end_date: datetime
    total_quantity: Optional[int] = Field(None, ge=0)
    usage_type: CouponUsageType = CouponUsageType.SINGLE_USE
    is_active: bool = True
    applicable_category: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "code": "AUTUMN10",
                "name": "Autumn harvest 10% off",
                "discount_type": "percentage",
                "discount_value": 10,
                "min_order_amount": 30000,
                "max_discount_amount": 5000,
                "start_date": "2026-09-01T00:00:00",
                "end_date": "2026-11-30T23:59:59",
                "total_quantity": 500,
                "usage_type": "single_use",
                "applicable_category": "fruit"
            }
        }


class CouponResponse(BaseModel):
    """Response schema for coupon"""
    id: str
    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int
    min_order_amount: int
    max_discount_amount: Optional[int] = None
    start_date: datetime
    end_date: datetime
    total_quantity: Optional[int] = None
    used_quantity: int
    usage_type: CouponUsageType
    is_active: bool
    applicable_category: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, coupon: Coupon) -> "CouponResponse":
        return cls(**coupon.model_dump(exclude={"id"}), id=coupon.id)


class CouponValidationRequest(BaseModel):
    """Schema for checking a coupon against a basket before ordering"""
    code: str
    order_amount: int = Field(ge=0)
    categories: List[str] = []

    class Config:
        json_schema_extra = {
            "example": {
                "code": "WELCOME5000",
                "order_amount": 25000,
                "categories": ["fruit"]
            }
        }


class CouponValidationResponse(BaseModel):
    """Outcome of a coupon check"""
    success: bool = True
    code: str
    name: str
    discount_amount: int
    # Order amount less the discount; shipping is added when the order is placed
    discounted_subtotal: int
