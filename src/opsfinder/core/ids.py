from __future__ import annotations

import uuid


def new_uuid() -> str:
    """Generate a new UUID4 as a string."""
    return str(uuid.uuid4())


def new_blob_name(extension: str) -> str:
    """Collision-free stored filename, e.g. ``3f2c...-9a1e.xlsx``."""
    ext = extension.lstrip(".")
    return f"{uuid.uuid4()}.{ext}" if ext else str(uuid.uuid4())
