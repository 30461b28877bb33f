"""Order endpoints"""

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List
import logging

from marketplace.config import settings
from marketplace.database import get_database
from marketplace.api.deps import get_current_user, require_admin, get_inventory, get_refund_gateway
from marketplace.core.errors import ValidationError
from marketplace.core.inventory import InventoryService
from marketplace.core.stripe_client import retrieve_payment_intent
from marketplace.schemas.order import (
    OrderCreate,
    OrderResponse,
    PaymentConfirmRequest,
    OrderCancelRequest,
    OrderStatusUpdate,
)
from marketplace.services import orders as order_service

logger = logging.getLogger(__name__)

# Customer endpoints, mounted under /api
router = APIRouter()

# Admin endpoints, mounted under /api/admin
admin_router = APIRouter()


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    List the current user's orders, newest first.
    """
    orders = await order_service.list_user_orders(db, current_user["_id"], page=page, limit=limit)
    return [OrderResponse.from_model(order) for order in orders]


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    inventory: InventoryService = Depends(get_inventory)
):
    """
    Place an order. Prices are snapshotted now; stock is taken immediately
    and the order waits for payment.
    """
    order = await order_service.place_order(
        db,
        inventory,
        current_user,
        order_data.items,
        coupon_code=order_data.coupon_code,
        shipping_address=order_data.shipping_address.model_dump() if order_data.shipping_address else None,
        notes=order_data.notes,
    )
    return OrderResponse.from_model(order)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Get one of the current user's orders.
    """
    order = await order_service.get_user_order(db, order_id, current_user)
    return OrderResponse.from_model(order)


@router.post("/orders/{order_id}/confirm-payment", response_model=OrderResponse)
async def confirm_order_payment(
    order_id: str,
    payment_data: PaymentConfirmRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    inventory: InventoryService = Depends(get_inventory)
):
    """
    Confirm payment of an order against its Stripe payment intent.
    """
    order = await order_service.get_user_order(db, order_id, current_user)
    payment_intent = await retrieve_payment_intent(payment_data.payment_intent_id)

    metadata = payment_intent.metadata or {}
    if metadata.get("order_id") != order.id:
        raise ValidationError("Payment intent was not created for this order")

    if (payment_intent.currency or "").lower() != settings.currency:
        raise ValidationError(f"Payment currency {payment_intent.currency} is not {settings.currency}")

    if payment_intent.status in ("processing", "requires_action", "requires_confirmation"):
        raise ValidationError(f"Payment is not settled yet ({payment_intent.status})")

    succeeded = payment_intent.status == "succeeded"
    logger.info(f"Payment intent {payment_intent.id} for order {order.order_number}: {payment_intent.status}")

    order = await order_service.confirm_payment(
        db,
        inventory,
        order_id,
        current_user,
        payment_intent.id,
        succeeded,
        amount_received=payment_intent.amount_received or 0,
    )
    return OrderResponse.from_model(order)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    cancel_data: OrderCancelRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    inventory: InventoryService = Depends(get_inventory),
    refund_gateway=Depends(get_refund_gateway)
):
    """
    Cancel an order that has not been prepared yet. Paid orders are
    refunded in full.
    """
    order = await order_service.cancel_order(
        db, inventory, refund_gateway, order_id, current_user, reason=cancel_data.reason
    )
    return OrderResponse.from_model(order)


@admin_router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Move an order through fulfillment: preparing, shipped, delivered (Admin only).
    """
    order = await order_service.advance_fulfillment(db, order_id, status_data.status)
    return OrderResponse.from_model(order)
