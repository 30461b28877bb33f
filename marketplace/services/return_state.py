"""Return request state machine

REQUESTED -> APPROVED -> COMPLETED, or REQUESTED -> REJECTED. COMPLETED and
REJECTED are terminal. Every status write is a compare-and-set on
(status, version) behind a pending_action claim, so two admins acting at
once cannot both win.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from marketplace.config import settings
from marketplace.core.errors import (
    ExternalServiceFailure,
    InvalidStateTransition,
    MarketplaceError,
    ValidationError,
)
from marketplace.core.inventory import InventoryService
from marketplace.models.order import OrderStatus
from marketplace.models.return_model import ReturnRequest, ReturnStatus
from marketplace.services.base import claim, compare_and_set, ensure_owner, find_or_404, release_claim
from marketplace.services.order_state import load_order, return_outcome_status, transition_order

logger = logging.getLogger(__name__)


RETURN_TRANSITIONS: Dict[ReturnStatus, FrozenSet[ReturnStatus]] = {
    ReturnStatus.REQUESTED: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
    ReturnStatus.APPROVED: frozenset({ReturnStatus.COMPLETED}),
    ReturnStatus.REJECTED: frozenset(),
    ReturnStatus.COMPLETED: frozenset(),
}


def ensure_return_transition(current: ReturnStatus, target: ReturnStatus):
    if target not in RETURN_TRANSITIONS[current]:
        raise InvalidStateTransition("return request", current.value, target.value)


def refund_idempotency_key(return_id: str) -> str:
    return f"return-{return_id}"


async def load_return(db: AsyncIOMotorDatabase, return_id: str) -> ReturnRequest:
    return ReturnRequest.model_validate(await find_or_404(db.returns, return_id, "Return request"))


class ReturnStateMachine:
    """
    Applies admin and customer actions to a return request

    Each action claims the request first, then moves the order, then
    finishes the claim with the new status. A failed order move or refund
    releases the claim and leaves the request as it was.
    """

    def __init__(self, db: AsyncIOMotorDatabase, inventory: InventoryService, refund_gateway):
        self.db = db
        self.inventory = inventory
        self.refund_gateway = refund_gateway

    async def _claim(self, ret: ReturnRequest, action: str) -> ReturnRequest:
        won = await claim(
            self.db.returns, ret.id, ret.status.value, ret.version,
            action=action, lease_seconds=settings.claim_lease_seconds,
        )
        if not won:
            await self._raise_lost_race(ret, action)
        return ret.model_copy(update={"version": ret.version + 1, "pending_action": action})

    async def _release(self, ret: ReturnRequest):
        if await release_claim(self.db.returns, ret.id, ret.pending_action, ret.version):
            logger.info(f"Return {ret.return_number}: released {ret.pending_action} claim")
        else:
            logger.warning(f"Return {ret.return_number}: {ret.pending_action} claim was already taken over")

    async def _write(
        self,
        ret: ReturnRequest,
        target: ReturnStatus,
        fields: Optional[dict] = None,
    ) -> ReturnRequest:
        """Finish the claim held on `ret` by setting its new status"""
        won = await compare_and_set(
            self.db.returns,
            ret.id,
            ret.status.value,
            ret.version,
            fields={**(fields or {}), "status": target.value},
            claimed_action=ret.pending_action,
        )
        if not won:
            await self._raise_lost_race(ret, target.value)

        logger.info(f"Return {ret.return_number}: {ret.status.value} -> {target.value}")
        return await load_return(self.db, ret.id)

    async def _move_order(self, ret: ReturnRequest, target: OrderStatus, extra: Optional[dict] = None):
        """Move the return's order while `ret` is claimed; release the claim if that fails"""
        try:
            order = await load_order(self.db, ret.order_id)
            await transition_order(self.db, order, target, extra=extra)
        except MarketplaceError:
            await self._release(ret)
            raise

    async def _raise_lost_race(self, ret: ReturnRequest, target: str):
        current = await self.db.returns.find_one({"_id": ObjectId(ret.id)}, {"status": 1, "pending_action": 1})
        if current is None:
            current_status = "cancelled"
        elif current.get("pending_action"):
            current_status = f"{current['status']} ({current['pending_action']} in progress)"
        else:
            current_status = current["status"]
        logger.warning(
            f"Return {ret.return_number} changed concurrently "
            f"(read {ret.status.value} v{ret.version}, now {current_status})"
        )
        raise InvalidStateTransition("return request", current_status, target)

    async def approve(self, ret: ReturnRequest, admin_note: Optional[str] = None) -> ReturnRequest:
        """Authorize the customer to send the goods back. Moves no money or stock."""
        ensure_return_transition(ret.status, ReturnStatus.APPROVED)

        ret = await self._claim(ret, ReturnStatus.APPROVED.value)
        await self._move_order(ret, OrderStatus.RETURN_APPROVED)
        return await self._write(
            ret, ReturnStatus.APPROVED,
            fields={"admin_note": admin_note, "approved_at": datetime.utcnow()},
        )

    async def reject(self, ret: ReturnRequest, rejection_reason: str) -> ReturnRequest:
        """Refuse the request; the order goes back to where it was before it"""
        if not rejection_reason or not rejection_reason.strip():
            raise ValidationError("A rejection reason is required")
        ensure_return_transition(ret.status, ReturnStatus.REJECTED)

        ret = await self._claim(ret, ReturnStatus.REJECTED.value)
        await self._move_order(ret, ret.order_status_at_request)
        return await self._write(
            ret, ReturnStatus.REJECTED,
            fields={"rejection_reason": rejection_reason.strip(), "rejected_at": datetime.utcnow()},
        )

    async def cancel(self, ret: ReturnRequest, user: dict):
        """Customer withdraws a request that has not been reviewed yet"""
        ensure_owner(ret.user_id, user, "return request")

        if ret.status != ReturnStatus.REQUESTED:
            raise InvalidStateTransition("return request", ret.status.value, "cancelled")

        ret = await self._claim(ret, "cancelled")
        await self._move_order(ret, ret.order_status_at_request)

        result = await self.db.returns.delete_one(
            {"_id": ObjectId(ret.id), "pending_action": "cancelled", "version": ret.version}
        )
        if result.deleted_count == 0:
            await self._raise_lost_race(ret, "cancelled")
        logger.info(f"Return {ret.return_number} cancelled by customer")

    async def complete(self, ret: ReturnRequest) -> ReturnRequest:
        """
        Refund the customer, put the goods back in stock and close the return.

        The refund goes first. If it fails the claim is released, the request
        stays APPROVED and no stock has moved, so the admin can simply try
        again; the idempotency key keeps a retried refund from paying out
        twice.

        Raises:
            InvalidStateTransition: If the request is not APPROVED or another
                call is completing it at the same time
            ExternalServiceFailure: If the refund could not be made
        """
        ensure_return_transition(ret.status, ReturnStatus.COMPLETED)
        ret = await self._claim(ret, ReturnStatus.COMPLETED.value)

        shipping_claimed = False
        try:
            order = await load_order(self.db, ret.order_id)

            if ret.shipping_refund_amount > 0:
                shipping_claimed = await self._claim_shipping_refund(ret)
                if not shipping_claimed:
                    raise InvalidStateTransition(
                        "return request", "shipping already refunded", ReturnStatus.COMPLETED.value
                    )

            refund_id = None
            if ret.total_refund_amount > 0:
                refund_id = await self.refund_gateway.refund(
                    order, ret.total_refund_amount, idempotency_key=refund_idempotency_key(ret.id)
                )
        except MarketplaceError:
            if shipping_claimed:
                await self._release_shipping_refund(ret)
            await self._release(ret)
            logger.error(f"Could not refund return {ret.return_number}; left APPROVED")
            raise

        try:
            await self._restore_inventory(ret)
        except MarketplaceError:
            await self._release(ret)
            raise

        returned = ret.returned_quantities
        order = await load_order(self.db, ret.order_id)
        await self._move_order(
            ret,
            return_outcome_status(order, returned),
            extra={"$inc": {f"returned_quantities.{item_id}": qty for item_id, qty in returned.items()}},
        )

        now = datetime.utcnow()
        completed = await self._write(
            ret, ReturnStatus.COMPLETED,
            fields={"completed_at": now, "refunded_at": now, "refund_transaction_id": refund_id},
        )

        logger.info(f"Return {ret.return_number} completed: refunded {ret.total_refund_amount} "
                    f"(items {ret.items_refund_amount}, shipping {ret.shipping_refund_amount})")
        return completed

    async def _claim_shipping_refund(self, ret: ReturnRequest) -> bool:
        """Mark the order's shipping refund as consumed by this return"""
        result = await self.db.orders.update_one(
            {
                "_id": ObjectId(ret.order_id),
                "$or": [{"shipping_refunded": False}, {"shipping_refund_return_id": ret.id}],
            },
            {"$set": {"shipping_refunded": True, "shipping_refund_return_id": ret.id}},
        )
        return result.matched_count == 1

    async def _release_shipping_refund(self, ret: ReturnRequest):
        await self.db.orders.update_one(
            {"_id": ObjectId(ret.order_id), "shipping_refund_return_id": ret.id},
            {"$set": {"shipping_refunded": False, "shipping_refund_return_id": None}},
        )

    async def _restore_inventory(self, ret: ReturnRequest):
        """
        Restore each returned line exactly once.

        A line is marked in restored_item_ids before its stock moves; only
        the caller whose mark lands restores it, and the mark is taken back
        if the restore fails.
        """
        for item in ret.items:
            marked = await self.db.returns.update_one(
                {"_id": ObjectId(ret.id), "restored_item_ids": {"$ne": item.order_item_id}},
                {"$addToSet": {"restored_item_ids": item.order_item_id}},
            )
            if marked.modified_count == 0:
                continue

            try:
                await self.inventory.restore(item.product_id, item.option_id, item.quantity)
            except ExternalServiceFailure:
                await self.db.returns.update_one(
                    {"_id": ObjectId(ret.id)},
                    {"$pull": {"restored_item_ids": item.order_item_id}},
                )
                raise
