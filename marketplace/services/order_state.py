"""Order status state machine

transition_order() is the only code path that writes an order's status.
"""

import logging
from typing import Any, Dict, FrozenSet, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from marketplace.config import settings
from marketplace.core.errors import InvalidStateTransition
from marketplace.models.order import Order, OrderStatus
from marketplace.services.base import claim, compare_and_set, find_or_404, release_claim

logger = logging.getLogger(__name__)


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({
        OrderStatus.PAID,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAID: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURN_REQUESTED}),
    OrderStatus.RETURN_REQUESTED: frozenset({
        OrderStatus.RETURN_APPROVED,
        OrderStatus.DELIVERED,
        OrderStatus.PARTIALLY_RETURNED,
    }),
    OrderStatus.RETURN_APPROVED: frozenset({
        OrderStatus.RETURN_COMPLETED,
        OrderStatus.PARTIALLY_RETURNED,
    }),
    OrderStatus.PARTIALLY_RETURNED: frozenset({OrderStatus.RETURN_REQUESTED}),
    OrderStatus.PAYMENT_FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURN_COMPLETED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def ensure_transition(current: OrderStatus, target: OrderStatus):
    """Raise InvalidStateTransition unless current -> target is in the table"""
    if not can_transition(current, target):
        raise InvalidStateTransition("order", current.value, target.value)


def return_outcome_status(order: Order, returned: Dict[str, int]) -> OrderStatus:
    """Status an order reaches once `returned` quantities have come back"""
    if order.is_fully_returned(returned):
        return OrderStatus.RETURN_COMPLETED
    return OrderStatus.PARTIALLY_RETURNED


async def load_order(db: AsyncIOMotorDatabase, order_id: str) -> Order:
    return Order.model_validate(await find_or_404(db.orders, order_id, "Order"))


async def claim_order(db: AsyncIOMotorDatabase, order: Order, target: OrderStatus) -> Order:
    """
    Reserve the right to move `order` to `target` before doing external work.

    Leaves the status alone but marks the order with a pending action, so
    every other writer (fulfillment, a second cancellation) loses its
    compare-and-set until the claim is finished with
    transition_order(..., claimed=True) or dropped with release_order_claim().
    """
    ensure_transition(order.status, target)

    won = await claim(
        db.orders, order.id, order.status.value, order.version,
        action=target.value, lease_seconds=settings.claim_lease_seconds,
    )
    if not won:
        await _raise_lost_race(db, order, target)

    logger.info(f"Order {order.order_number}: claimed for {target.value}")
    return order.model_copy(update={"version": order.version + 1, "pending_action": target.value})


async def release_order_claim(db: AsyncIOMotorDatabase, order: Order):
    """Give up a claim taken with claim_order(); the order keeps its status"""
    if await release_claim(db.orders, order.id, order.pending_action, order.version):
        logger.info(f"Order {order.order_number}: released {order.pending_action} claim")
    else:
        logger.warning(f"Order {order.order_number}: {order.pending_action} claim was already taken over")


async def transition_order(
    db: AsyncIOMotorDatabase,
    order: Order,
    target: OrderStatus,
    fields: Optional[Dict[str, Any]] = None,
    extra: Optional[Dict[str, Any]] = None,
    claimed: bool = False,
) -> Order:
    """
    Move an order to `target`

    Args:
        db: Database instance
        order: Order as last read by the caller
        target: Requested status
        fields: Additional values to $set with the status
        extra: Additional update operators (e.g. $inc of returned quantities)
        claimed: True when `order` is the copy returned by claim_order()

    Returns:
        The order as stored after the transition

    Raises:
        InvalidStateTransition: If the table forbids the move, another
            writer changed the order since it was read, or another action
            holds a claim on it
    """
    ensure_transition(order.status, target)

    won = await compare_and_set(
        db.orders,
        order.id,
        order.status.value,
        order.version,
        fields={**(fields or {}), "status": target.value},
        extra=extra,
        claimed_action=order.pending_action if claimed else None,
    )
    if not won:
        await _raise_lost_race(db, order, target)

    logger.info(f"Order {order.order_number}: {order.status.value} -> {target.value}")
    return await load_order(db, order.id)


async def _raise_lost_race(db: AsyncIOMotorDatabase, order: Order, target: OrderStatus):
    current = await db.orders.find_one({"_id": ObjectId(order.id)}, {"status": 1, "pending_action": 1})
    if current is None:
        current_status = "deleted"
    elif current.get("pending_action"):
        current_status = f"{current['status']} ({current['pending_action']} in progress)"
    else:
        current_status = current["status"]
    logger.warning(
        f"Order {order.order_number} changed concurrently "
        f"(read {order.status.value} v{order.version}, now {current_status})"
    )
    raise InvalidStateTransition("order", current_status, target.value)
