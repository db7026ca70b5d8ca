"""ID helpers."""

from __future__ import annotations

import uuid


def new_id() -> str:
    """Generate a random UUID4 string in its canonical dashed form."""
    return str(uuid.uuid4())


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError):
        return False
    return True
