"""Coupon models"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional
from enum import Enum
from marketplace.models.common import ObjectIdStr


class DiscountType(str, Enum):
    """Discount type enumeration"""
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE = "percentage"


class CouponUsageType(str, Enum):
    """Whether one user may redeem the coupon more than once"""
    SINGLE_USE = "single_use"
    MULTI_USE = "multi_use"


class Coupon(BaseModel):
    """Coupon model"""
    id: Optional[ObjectIdStr] = Field(None, alias="_id")
    code: str = Field(pattern=r"^[A-Z0-9]+$", max_length=50)
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(gt=0)
    min_order_amount: int = Field(default=0, ge=0)
    max_discount_amount: Optional[int] = Field(None, ge=0)
    start_date: datetime
    end_date: datetime
    total_quantity: Optional[int] = Field(None, ge=0)
    used_quantity: int = Field(default=0, ge=0)
    usage_type: CouponUsageType = CouponUsageType.SINGLE_USE
    is_active: bool = True
    applicable_category: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "code": "WELCOME5000",
                "name": "Welcome discount",
                "discount_type": "fixed_amount",
                "discount_value": 5000,
                "min_order_amount": 20000,
                "start_date": "2026-01-01T00:00:00",
                "end_date": "2026-12-31T23:59:59",
                "total_quantity": 1000,
                "used_quantity": 0,
                "usage_type": "single_use",
                "is_active": True
            }
        }

    @field_validator("code", mode="before")
    @classmethod
    def uppercase_code(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def has_stock(self) -> bool:
        return self.total_quantity is None or self.used_quantity < self.total_quantity
