"""Identifier validation"""

from bson import ObjectId
from bson.errors import InvalidId

from marketplace.core.errors import ValidationError


def validate_object_id(id_str: str) -> bool:
    """True if `id_str` is a valid MongoDB ObjectId"""
    try:
        ObjectId(id_str)
        return True
    except (InvalidId, TypeError):
        return False


def to_object_id(id_str: str, resource: str) -> ObjectId:
    """
    Convert a path or body id to ObjectId

    Args:
        id_str: Id as sent by the client
        resource: Name used in the error detail ("order", "return request")

    Raises:
        ValidationError: If the id is malformed
    """
    if not validate_object_id(id_str):
        raise ValidationError(f"Invalid {resource} ID: {id_str}")
    return ObjectId(id_str)
