"""Utility functions"""

from marketplace.utils.validators import to_object_id, validate_object_id

__all__ = ["to_object_id", "validate_object_id"]
