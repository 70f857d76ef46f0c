import time
import uuid


def generate_uuid() -> str:
    """Random identifier without dashes, used for synthetic completion ids."""
    return uuid.uuid4().hex


def generate_request_id() -> str:
    return uuid.uuid4().hex[:16]


def get_timestamp() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())
