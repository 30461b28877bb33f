"""Return workflow: eligibility, submission, admin review and queries"""

import logging
import re
import secrets
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from marketplace.config import settings
from marketplace.core.errors import IneligibleReturn, ValidationError
from marketplace.core.inventory import InventoryService
from marketplace.models.order import Order, OrderStatus
from marketplace.models.return_model import (
    DETAILED_REASON_MAX_LENGTH,
    DETAILED_REASON_MIN_LENGTH,
    ReturnReason,
    ReturnRequest,
    ReturnStatus,
)
from marketplace.services.base import ensure_owner
from marketplace.services.notifications import ReturnNotifier
from marketplace.services.order_state import load_order, transition_order
from marketplace.services.refund_engine import RefundBreakdown, compute_refund
from marketplace.services.return_eligibility import ReturnEligibility, check_return_eligibility
from marketplace.services.return_state import ReturnStateMachine, load_return

logger = logging.getLogger(__name__)


def generate_return_number() -> str:
    """Generate unique return number"""
    timestamp = datetime.utcnow().strftime("%Y%m%d")
    random_suffix = secrets.token_hex(4).upper()
    return f"RET-{timestamp}-{random_suffix}"


class ReturnWorkflow:
    """Entry point for every return operation, customer and admin alike"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        inventory: InventoryService,
        refund_gateway,
        window_days: int = settings.return_window_days,
        notifier: Optional[ReturnNotifier] = None,
    ):
        self.db = db
        self.window_days = window_days
        self.notifier = notifier
        self.state = ReturnStateMachine(db, inventory, refund_gateway)

    async def _load_owned_order(self, order_id: str, user: dict) -> Order:
        order = await load_order(self.db, order_id)
        ensure_owner(order.user_id, user, "order")
        return order

    # Customer operations

    async def check_eligibility(
        self,
        order_id: str,
        user: dict,
        now: Optional[datetime] = None,
    ) -> Tuple[Order, ReturnEligibility]:
        order = await self._load_owned_order(order_id, user)
        return order, check_return_eligibility(order, now=now, window_days=self.window_days)

    async def preview(
        self,
        order_id: str,
        user: dict,
        items: Dict[str, int],
        reason_category: ReturnReason,
    ) -> Tuple[Order, RefundBreakdown]:
        """Refund breakdown for a prospective return; nothing is stored"""
        order = await self._load_owned_order(order_id, user)
        return order, compute_refund(order, items, reason_category)

    async def submit(
        self,
        user: dict,
        order_id: str,
        reason_category: ReturnReason,
        detailed_reason: str,
        items: Dict[str, int],
        proof_image_urls: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> ReturnRequest:
        """
        Create a return request for a delivered order.

        Eligibility is checked again here regardless of what the customer
        saw earlier. Amounts are computed from the order's price snapshot.

        Raises:
            IneligibleReturn: If the order cannot be returned now
            InvalidReturnSelection: If the selected items are not returnable
            ValidationError: If the detailed reason is too short or too long
        """
        detailed_reason = (detailed_reason or "").strip()
        if not DETAILED_REASON_MIN_LENGTH <= len(detailed_reason) <= DETAILED_REASON_MAX_LENGTH:
            raise ValidationError(
                f"Detailed reason must be {DETAILED_REASON_MIN_LENGTH}-{DETAILED_REASON_MAX_LENGTH} characters"
            )

        order = await self._load_owned_order(order_id, user)

        eligibility = check_return_eligibility(order, now=now, window_days=self.window_days)
        if not eligibility.eligible:
            raise IneligibleReturn(f"Order cannot be returned: {eligibility.reason}")

        breakdown = compute_refund(order, items, reason_category)

        requested_at = datetime.utcnow()
        return_request = ReturnRequest(
            return_number=generate_return_number(),
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            status=ReturnStatus.REQUESTED,
            reason_category=reason_category,
            detailed_reason=detailed_reason,
            proof_image_urls=proof_image_urls or [],
            items=breakdown.items,
            items_refund_amount=breakdown.items_refund_amount,
            shipping_refund_amount=breakdown.shipping_refund_amount,
            total_refund_amount=breakdown.total_refund_amount,
            order_status_at_request=order.status,
            requested_at=requested_at,
            updated_at=requested_at,
        )

        # Move the order first: its compare-and-set rejects a second
        # submission racing on the same order.
        requested_order = await transition_order(self.db, order, OrderStatus.RETURN_REQUESTED)

        return_dict = return_request.model_dump(by_alias=True, exclude={"id"}, mode="python")
        return_dict["status"] = ReturnStatus.REQUESTED.value
        return_dict["reason_category"] = reason_category.value
        return_dict["order_status_at_request"] = order.status.value
        try:
            result = await self.db.returns.insert_one(return_dict)
        except PyMongoError as e:
            logger.error(f"Could not store return for order {order.order_number}, reverting order: {str(e)}")
            await transition_order(self.db, requested_order, order.status)
            raise

        logger.info(f"Return {return_request.return_number} requested for order {order.order_number}: "
                    f"{breakdown.total_refund_amount} ({reason_category.value})")
        submitted = return_request.model_copy(update={"id": str(result.inserted_id)})
        if self.notifier:
            self.notifier.return_requested(submitted)
        return submitted

    async def cancel(self, return_id: str, user: dict):
        ret = await load_return(self.db, return_id)
        await self.state.cancel(ret, user)

    async def list_user_returns(self, user: dict, page: int = 1, limit: int = 20) -> List[ReturnRequest]:
        skip = (page - 1) * limit
        cursor = (
            self.db.returns.find({"user_id": user["_id"]})
            .sort("requested_at", -1)
            .skip(skip)
            .limit(limit)
        )
        return [ReturnRequest.model_validate(doc) for doc in await cursor.to_list(length=limit)]

    async def get_return(self, return_id: str, user: Optional[dict] = None) -> ReturnRequest:
        """Load a return; when `user` is given it must own the return or be staff"""
        ret = await load_return(self.db, return_id)
        if user is not None:
            ensure_owner(ret.user_id, user, "return request")
        return ret

    # Admin operations

    async def approve(self, return_id: str, admin_note: Optional[str] = None) -> ReturnRequest:
        ret = await load_return(self.db, return_id)
        approved = await self.state.approve(ret, admin_note)
        if self.notifier:
            self.notifier.return_approved(approved)
        return approved

    async def reject(self, return_id: str, rejection_reason: str) -> ReturnRequest:
        ret = await load_return(self.db, return_id)
        rejected = await self.state.reject(ret, rejection_reason)
        if self.notifier:
            self.notifier.return_rejected(rejected)
        return rejected

    async def complete(self, return_id: str) -> ReturnRequest:
        ret = await load_return(self.db, return_id)
        completed = await self.state.complete(ret)
        if self.notifier:
            self.notifier.return_completed(completed)
        return completed

    async def list_returns(
        self,
        status: Optional[ReturnStatus] = None,
        reason_category: Optional[ReturnReason] = None,
        keyword: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[ReturnRequest], int]:
        """
        Admin listing, newest first.

        Returns:
            (returns on this page, total matching count)
        """
        query = {}
        if status:
            query["status"] = status.value
        if reason_category:
            query["reason_category"] = reason_category.value
        if keyword:
            pattern = {"$regex": re.escape(keyword.strip()), "$options": "i"}
            query["$or"] = [{"order_number": pattern}, {"customer_name": pattern}]

        total = await self.db.returns.count_documents(query)

        skip = (page - 1) * limit
        cursor = self.db.returns.find(query).sort("requested_at", -1).skip(skip).limit(limit)
        returns = [ReturnRequest.model_validate(doc) for doc in await cursor.to_list(length=limit)]
        return returns, total

    async def pending_count(self) -> int:
        return await self.db.returns.count_documents({"status": ReturnStatus.REQUESTED.value})
