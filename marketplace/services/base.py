"""Shared persistence helpers for the workflow services"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection

from marketplace.core.errors import ForbiddenError, NotFoundError
from marketplace.utils.validators import to_object_id

# Roles that may act on other customers' orders and returns
STAFF_ROLES = ("admin", "support")


def ensure_owner(owner_id: str, user: dict, resource: str):
    """Customers may only touch their own records; staff may touch any"""
    if owner_id != user["_id"] and user.get("role") not in STAFF_ROLES:
        raise ForbiddenError(f"Not authorized to access this {resource}")


async def find_or_404(collection: AsyncIOMotorCollection, doc_id: str, resource: str) -> dict:
    doc = await collection.find_one({"_id": to_object_id(doc_id, resource)})
    if not doc:
        raise NotFoundError(resource)
    return doc


async def compare_and_set(
    collection: AsyncIOMotorCollection,
    doc_id: str,
    expected_status: str,
    expected_version: int,
    fields: Optional[Dict[str, Any]] = None,
    extra: Optional[Dict[str, Any]] = None,
    claimed_action: Optional[str] = None,
) -> bool:
    """
    Write `fields` only if the document still has the status and version
    the caller read. Bumps the version on success.

    A document carrying a pending_action marker refuses every write except
    the one finishing that action, which clears the marker.

    Args:
        collection: Target collection
        doc_id: Document id
        expected_status: Status the caller validated against
        expected_version: Version the caller read
        fields: Values for $set (updated_at is always stamped)
        extra: Additional update operators merged into the update
        claimed_action: Action the caller claimed with claim(), if any

    Returns:
        True if this call won the write, False if someone else changed the
        document first
    """
    updates = {**(fields or {}), "updated_at": datetime.utcnow()}
    if claimed_action is not None:
        updates.update({"pending_action": None, "claimed_at": None})

    update: Dict[str, Any] = {"$set": updates, "$inc": {"version": 1}}
    for operator, values in (extra or {}).items():
        update.setdefault(operator, {}).update(values)

    result = await collection.update_one(
        {
            "_id": ObjectId(doc_id),
            "status": expected_status,
            "version": expected_version,
            "pending_action": claimed_action,
        },
        update,
    )
    return result.modified_count == 1


async def claim(
    collection: AsyncIOMotorCollection,
    doc_id: str,
    expected_status: str,
    expected_version: int,
    action: str,
    lease_seconds: int,
) -> bool:
    """
    Mark a document as owned by `action` before doing external work.

    Other writers' compare_and_set() fails until the claim is finished or
    released. A claim older than `lease_seconds` may be taken over, so a
    crashed worker does not pin the document forever.
    """
    now = datetime.utcnow()
    result = await collection.update_one(
        {
            "_id": ObjectId(doc_id),
            "status": expected_status,
            "version": expected_version,
            "$or": [
                {"pending_action": None},
                {"claimed_at": {"$lt": now - timedelta(seconds=lease_seconds)}},
            ],
        },
        {
            "$set": {"pending_action": action, "claimed_at": now, "updated_at": now},
            "$inc": {"version": 1},
        },
    )
    return result.modified_count == 1


async def release_claim(collection: AsyncIOMotorCollection, doc_id: str, action: str, version: int) -> bool:
    """Drop a claim whose action could not be finished"""
    result = await collection.update_one(
        {"_id": ObjectId(doc_id), "pending_action": action, "version": version},
        {
            "$set": {"pending_action": None, "claimed_at": None, "updated_at": datetime.utcnow()},
            "$inc": {"version": 1},
        },
    )
    return result.modified_count == 1
