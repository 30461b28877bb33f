"""Product models"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from marketplace.models.common import ObjectIdStr


class Product(BaseModel):
    """Product model"""
    id: Optional[ObjectIdStr] = Field(None, alias="_id")
    name: str
    price: int = Field(ge=0)
    discount_price: Optional[int] = Field(None, ge=0)
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None
    shipping_fee: int = Field(default=0, ge=0)
    can_combine_shipping: bool = False
    combine_shipping_unit: Optional[int] = Field(None, ge=1)
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "name": "Jeju Tangerines 3kg",
                "price": 12000,
                "discount_price": 10000,
                "stock": 100,
                "category": "fruit",
                "shipping_fee": 3000,
                "can_combine_shipping": True,
                "combine_shipping_unit": 4,
                "active": True
            }
        }

    @property
    def effective_price(self) -> int:
        """Discounted price when one is set, otherwise the regular price"""
        if self.discount_price is not None:
            return self.discount_price
        return self.price

    def shipping_fee_for(self, quantity: int) -> int:
        """Shipping fee for `quantity` units, charged per box when combinable"""
        if self.shipping_fee <= 0:
            return 0
        if self.can_combine_shipping and self.combine_shipping_unit:
            boxes = -(-quantity // self.combine_shipping_unit)
            return self.shipping_fee * boxes
        return self.shipping_fee * quantity


class ProductOption(BaseModel):
    """Purchasable variant of a product with its own stock row"""
    id: Optional[ObjectIdStr] = Field(None, alias="_id")
    product_id: str
    name: str
    additional_price: int = 0
    stock: int = Field(default=0, ge=0)

    class Config:
        populate_by_name = True
