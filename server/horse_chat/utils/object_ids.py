from typing import Any, Optional

from bson import ObjectId


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a 24-hex string (or an ObjectId), None otherwise."""
    if isinstance(value, ObjectId):
        return value
    if is_valid_id(value):
        return ObjectId(value)
    return None
