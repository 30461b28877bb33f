"""FastAPI dependencies for authentication, database access and services"""

from typing import Optional

from fastapi import Depends, HTTPException, status, Header
from motor.motor_asyncio import AsyncIOMotorDatabase
from marketplace.config import settings
from marketplace.database import get_database
from marketplace.core.errors import ValidationError
from marketplace.core.security import bearer_token, token_subject
from marketplace.core.inventory import InventoryService
from marketplace.core.stripe_client import StripeRefundGateway
from marketplace.services.base import STAFF_ROLES
from marketplace.services.notifications import ReturnNotifier
from marketplace.services.returns import ReturnWorkflow
from marketplace.utils.validators import to_object_id


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> dict:
    """
    Resolve the customer or staff member behind the bearer token

    The user document is returned with `_id` as a string so it compares
    directly against `user_id` on orders and returns.
    """
    token = bearer_token(authorization)
    if token is None:
        raise _unauthorized("Not authenticated")

    subject = token_subject(token)
    if subject is None:
        raise _unauthorized("Invalid or expired token")

    try:
        user_oid = to_object_id(subject, "user")
    except ValidationError:
        raise _unauthorized("Invalid token payload")

    user = await db.users.find_one({"_id": user_oid})
    if not user:
        raise _unauthorized("User not found")
    if not user.get("active", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    user["_id"] = str(user["_id"])
    return user


async def require_admin(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """Staff only (admin or support)"""
    if current_user.get("role") not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff role required",
        )
    return current_user


def get_inventory(db: AsyncIOMotorDatabase = Depends(get_database)) -> InventoryService:
    return InventoryService(db)


def get_refund_gateway() -> StripeRefundGateway:
    return StripeRefundGateway(
        max_attempts=settings.refund_max_attempts,
        backoff_seconds=settings.refund_backoff_seconds,
        timeout_seconds=settings.refund_timeout_seconds,
    )


def get_notifier(db: AsyncIOMotorDatabase = Depends(get_database)) -> ReturnNotifier:
    return ReturnNotifier(db)


def get_return_workflow(
    db: AsyncIOMotorDatabase = Depends(get_database),
    inventory: InventoryService = Depends(get_inventory),
    refund_gateway=Depends(get_refund_gateway),
    notifier: ReturnNotifier = Depends(get_notifier),
) -> ReturnWorkflow:
    return ReturnWorkflow(
        db, inventory, refund_gateway,
        window_days=settings.return_window_days,
        notifier=notifier,
    )
