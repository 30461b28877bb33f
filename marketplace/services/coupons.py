"""Coupon lookup, redemption and administration"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from marketplace.core.errors import IneligibleCoupon, ValidationError
from marketplace.models.coupon import Coupon, CouponUsageType, DiscountType
from marketplace.services.coupon_calculator import calculate_discount

logger = logging.getLogger(__name__)


async def get_coupon_by_code(db: AsyncIOMotorDatabase, code: str) -> Coupon:
    doc = await db.coupons.find_one({"code": code.strip().upper()})
    if not doc:
        raise IneligibleCoupon("Coupon code does not exist")
    return Coupon.model_validate(doc)


async def has_redeemed(db: AsyncIOMotorDatabase, coupon: Coupon, user_id: str) -> bool:
    doc = await db.coupon_redemptions.find_one({"coupon_id": coupon.id, "user_id": user_id})
    return doc is not None


async def price_coupon(
    db: AsyncIOMotorDatabase,
    code: str,
    subtotal: int,
    user_id: Optional[str] = None,
    categories: Optional[Iterable[str]] = None,
) -> Tuple[Coupon, int]:
    """
    Look up a coupon by code and compute its discount on `subtotal`

    Returns:
        (coupon, discount amount)

    Raises:
        IneligibleCoupon: If the code is unknown, already used by this
            customer (SINGLE_USE) or not applicable to the order
    """
    coupon = await get_coupon_by_code(db, code)

    if user_id and coupon.usage_type == CouponUsageType.SINGLE_USE:
        if await has_redeemed(db, coupon, user_id):
            raise IneligibleCoupon("You have already used this coupon")

    return coupon, calculate_discount(coupon, subtotal, categories=categories)


async def redeem_coupon(db: AsyncIOMotorDatabase, coupon: Coupon, user_id: str, order_id: str):
    """
    Count one redemption of `coupon` for an order.

    The counter is increased by a single conditional update, so concurrent
    redemptions can never push used_quantity past total_quantity.

    Raises:
        IneligibleCoupon: If the coupon sold out or the customer already
            used a SINGLE_USE coupon
    """
    query = {"_id": ObjectId(coupon.id), "is_active": True}
    if coupon.total_quantity is not None:
        query["total_quantity"] = coupon.total_quantity
        query["used_quantity"] = {"$lt": coupon.total_quantity}

    updated = await db.coupons.find_one_and_update(
        query,
        {"$inc": {"used_quantity": 1}, "$set": {"updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise IneligibleCoupon("This coupon has been fully redeemed")

    redemption = {
        "coupon_id": coupon.id,
        "code": coupon.code,
        "user_id": user_id,
        "order_id": order_id,
        "redeemed_at": datetime.utcnow(),
    }
    if coupon.usage_type == CouponUsageType.SINGLE_USE:
        redemption["single_use_key"] = f"{coupon.id}:{user_id}"

    try:
        await db.coupon_redemptions.insert_one(redemption)
    except DuplicateKeyError:
        await db.coupons.update_one({"_id": ObjectId(coupon.id)}, {"$inc": {"used_quantity": -1}})
        raise IneligibleCoupon("You have already used this coupon")

    logger.info(f"Coupon {coupon.code} redeemed by {user_id} for order {order_id} "
                f"({updated['used_quantity']}/{coupon.total_quantity or 'unlimited'})")


async def create_coupon(db: AsyncIOMotorDatabase, data: dict) -> Coupon:
    """Create a coupon definition (admin)"""
    coupon = Coupon.model_validate(data)

    if coupon.start_date > coupon.end_date:
        raise ValidationError("Start date must be before end date")

    if coupon.discount_type == DiscountType.PERCENTAGE and coupon.discount_value > 100:
        raise ValidationError("Percentage discount must be between 1 and 100")

    if await db.coupons.find_one({"code": coupon.code}):
        raise ValidationError(f"Coupon code already exists: {coupon.code}")

    doc = coupon.model_dump(exclude={"id"})
    doc["discount_type"] = coupon.discount_type.value
    doc["usage_type"] = coupon.usage_type.value
    doc["used_quantity"] = 0
    result = await db.coupons.insert_one(doc)
    logger.info(f"Created coupon {coupon.code}")
    return coupon.model_copy(update={"id": str(result.inserted_id), "used_quantity": 0})


async def list_coupons(db: AsyncIOMotorDatabase, page: int = 1, limit: int = 20) -> List[Coupon]:
    skip = (page - 1) * limit
    cursor = db.coupons.find({}).sort("created_at", -1).skip(skip).limit(limit)
    return [Coupon.model_validate(doc) for doc in await cursor.to_list(length=limit)]
