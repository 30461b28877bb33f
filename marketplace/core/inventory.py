"""Inventory adjustments for products and product options"""

import logging
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from marketplace.core.errors import ExternalServiceFailure, ValidationError

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock counter owner.

    Every change is a single atomic $inc on the option row when an option
    is given, otherwise on the product row, so concurrent adjustments on
    the same SKU all apply.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    def _target(self, product_id: str, option_id: Optional[str]):
        if option_id:
            return self.db.product_options, ObjectId(option_id)
        return self.db.products, ObjectId(product_id)

    async def restore(self, product_id: str, option_id: Optional[str], quantity: int):
        """
        Put `quantity` units back on the shelf

        Raises:
            ExternalServiceFailure: If the stock row no longer exists
        """
        collection, row_id = self._target(product_id, option_id)
        result = await collection.update_one({"_id": row_id}, {"$inc": {"stock": quantity}})

        if result.matched_count == 0:
            logger.error(f"Stock row not found while restoring: product={product_id} option={option_id}")
            raise ExternalServiceFailure("Inventory", f"stock row for product {product_id} not found")

        logger.info(f"Restored {quantity} units: product={product_id} option={option_id}")

    async def deduct(self, product_id: str, option_id: Optional[str], quantity: int):
        """
        Take `quantity` units off the shelf, refusing to go below zero

        Raises:
            ValidationError: If there is not enough stock
        """
        collection, row_id = self._target(product_id, option_id)
        result = await collection.update_one(
            {"_id": row_id, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}},
        )

        if result.modified_count == 0:
            raise ValidationError(f"Insufficient stock for product {product_id}")

        logger.info(f"Deducted {quantity} units: product={product_id} option={option_id}")
