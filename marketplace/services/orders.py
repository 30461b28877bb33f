"""Order placement, payment confirmation, cancellation and fulfillment"""

import logging
import secrets
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from marketplace.core.errors import MarketplaceError, NotFoundError, ValidationError
from marketplace.core.inventory import InventoryService
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.product import Product, ProductOption
from marketplace.services.base import ensure_owner
from marketplace.services.coupon_calculator import compute_order_totals
from marketplace.services.coupons import price_coupon, redeem_coupon
from marketplace.services.order_state import (
    claim_order,
    ensure_transition,
    load_order,
    release_order_claim,
    transition_order,
)
from marketplace.utils.validators import to_object_id

logger = logging.getLogger(__name__)

# Statuses an admin can push an order into by hand
FULFILLMENT_STATUSES = (OrderStatus.PREPARING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


def generate_order_number() -> str:
    """Generate unique order number"""
    timestamp = datetime.utcnow().strftime("%Y%m%d")
    random_suffix = secrets.token_hex(4).upper()
    return f"ORD-{timestamp}-{random_suffix}"


async def build_order_items(db: AsyncIOMotorDatabase, items_input: Iterable) -> Tuple[List[OrderItem], int, int]:
    """
    Snapshot current prices for the requested lines.
    Returns (order_items, subtotal, shipping_fee)
    """
    order_items = []
    subtotal = 0
    shipping_fee = 0

    for item in items_input:
        product_doc = await db.products.find_one(
            {"_id": to_object_id(item.product_id, "product"), "active": True}
        )
        if not product_doc:
            raise NotFoundError(f"Product {item.product_id}")
        product = Product.model_validate(product_doc)

        unit_price = product.effective_price
        option = None
        if item.option_id:
            option_doc = await db.product_options.find_one(
                {"_id": to_object_id(item.option_id, "option"), "product_id": product.id}
            )
            if not option_doc:
                raise NotFoundError(f"Option {item.option_id}")
            option = ProductOption.model_validate(option_doc)
            unit_price += option.additional_price

        order_items.append(
            OrderItem(
                item_id=str(ObjectId()),
                product_id=product.id,
                option_id=option.id if option else None,
                name=product.name,
                option_name=option.name if option else None,
                category=product.category,
                quantity=item.quantity,
                unit_price=unit_price,
                subtotal=unit_price * item.quantity,
            )
        )
        subtotal += unit_price * item.quantity
        shipping_fee += product.shipping_fee_for(item.quantity)

    return order_items, subtotal, shipping_fee


async def place_order(
    db: AsyncIOMotorDatabase,
    inventory: InventoryService,
    user: dict,
    items_input: list,
    coupon_code: Optional[str] = None,
    shipping_address: Optional[dict] = None,
    notes: Optional[str] = None,
) -> Order:
    """
    Create an order awaiting payment.

    Stock is taken when the order is placed and given back if payment fails
    or the order is cancelled. Coupon spend is permanent.
    """
    if not items_input:
        raise ValidationError("Order must contain at least one item")

    user_id = user["_id"]
    order_items, subtotal, shipping_fee = await build_order_items(db, items_input)

    coupon = None
    discount = 0
    if coupon_code:
        categories = [item.category for item in order_items if item.category]
        coupon, discount = await price_coupon(db, coupon_code, subtotal, user_id=user_id, categories=categories)

    order_oid = ObjectId()
    deducted = []
    try:
        for item in order_items:
            await inventory.deduct(item.product_id, item.option_id, item.quantity)
            deducted.append(item)
        if coupon:
            await redeem_coupon(db, coupon, user_id, str(order_oid))
    except MarketplaceError:
        for item in deducted:
            await inventory.restore(item.product_id, item.option_id, item.quantity)
        raise

    totals = compute_order_totals(subtotal, discount, shipping_fee)
    now = datetime.utcnow()
    order_doc = {
        "_id": order_oid,
        "order_number": generate_order_number(),
        "user_id": user_id,
        "customer_name": user.get("name"),
        "customer_email": user.get("email"),
        "items": [item.model_dump() for item in order_items],
        **totals,
        "coupon_code": coupon.code if coupon else None,
        "status": OrderStatus.PENDING_PAYMENT.value,
        "shipping_address": shipping_address,
        "notes": notes,
        "returned_quantities": {},
        "shipping_refunded": False,
        "created_at": now,
        "updated_at": now,
        "version": 0,
    }
    await db.orders.insert_one(order_doc)

    logger.info(f"Placed order {order_doc['order_number']} for {user_id}: "
                f"subtotal={subtotal} discount={totals['coupon_discount_amount']} "
                f"shipping={shipping_fee} final={totals['final_amount']}")
    return Order.model_validate(order_doc)


async def confirm_payment(
    db: AsyncIOMotorDatabase,
    inventory: InventoryService,
    order_id: str,
    user: dict,
    payment_intent_id: str,
    succeeded: bool,
    amount_received: int = 0,
) -> Order:
    """Record the payment provider's verdict for an order awaiting payment"""
    order = await load_order(db, order_id)
    ensure_owner(order.user_id, user, "order")

    used_by = await db.orders.find_one(
        {"payment_intent_id": payment_intent_id, "_id": {"$ne": ObjectId(order.id)}}, {"order_number": 1}
    )
    if used_by:
        logger.warning(f"Payment intent {payment_intent_id} already recorded on order {used_by['order_number']}")
        raise ValidationError("Payment has already been applied to another order")

    try:
        if succeeded:
            if amount_received != order.final_amount:
                raise ValidationError(
                    f"Payment amount {amount_received} does not match order total {order.final_amount}"
                )
            return await transition_order(
                db, order, OrderStatus.PAID,
                fields={"payment_intent_id": payment_intent_id, "paid_at": datetime.utcnow()},
            )

        failed = await transition_order(
            db, order, OrderStatus.PAYMENT_FAILED,
            fields={"payment_intent_id": payment_intent_id},
        )
    except DuplicateKeyError as e:
        raise ValidationError("Payment has already been applied to another order") from e

    for item in failed.items:
        await inventory.restore(item.product_id, item.option_id, item.quantity)
    return failed


async def cancel_order(
    db: AsyncIOMotorDatabase,
    inventory: InventoryService,
    refund_gateway,
    order_id: str,
    user: dict,
    reason: Optional[str] = None,
) -> Order:
    """
    Cancel an order before it is prepared.

    A paid order is refunded in full first; stock is restored only after
    the cancellation is committed, so a failed refund leaves the order PAID
    with nothing moved. The order stays claimed while the refund is in
    flight, so fulfillment cannot start under it.
    """
    order = await load_order(db, order_id)
    ensure_owner(order.user_id, user, "order")
    ensure_transition(order.status, OrderStatus.CANCELLED)

    refund_id = None
    claimed = order.status == OrderStatus.PAID
    if claimed:
        order = await claim_order(db, order, OrderStatus.CANCELLED)
        if order.final_amount > 0:
            try:
                refund_id = await refund_gateway.refund(
                    order, order.final_amount, idempotency_key=f"order-cancel-{order.id}"
                )
            except MarketplaceError:
                await release_order_claim(db, order)
                logger.error(f"Refund failed for order {order.order_number}; left PAID")
                raise

    cancelled = await transition_order(
        db, order, OrderStatus.CANCELLED,
        fields={
            "cancelled_at": datetime.utcnow(),
            "cancellation_reason": reason,
            "refund_transaction_id": refund_id,
        },
        claimed=claimed,
    )

    for item in cancelled.items:
        await inventory.restore(item.product_id, item.option_id, item.quantity)

    return cancelled


async def advance_fulfillment(db: AsyncIOMotorDatabase, order_id: str, target: OrderStatus) -> Order:
    """Admin moves an order along PAID -> PREPARING -> SHIPPED -> DELIVERED"""
    if target not in FULFILLMENT_STATUSES:
        raise ValidationError(f"Status '{target.value}' cannot be set by hand")

    order = await load_order(db, order_id)
    fields = {"delivered_at": datetime.utcnow()} if target == OrderStatus.DELIVERED else None
    return await transition_order(db, order, target, fields=fields)


async def list_user_orders(db: AsyncIOMotorDatabase, user_id: str, page: int = 1, limit: int = 20) -> List[Order]:
    skip = (page - 1) * limit
    cursor = db.orders.find({"user_id": user_id}).sort("created_at", -1).skip(skip).limit(limit)
    return [Order.model_validate(doc) for doc in await cursor.to_list(length=limit)]


async def get_user_order(db: AsyncIOMotorDatabase, order_id: str, user: dict) -> Order:
    order = await load_order(db, order_id)
    ensure_owner(order.user_id, user, "order")
    return order
